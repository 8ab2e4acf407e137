"""
Tests for the lan-recon command line interface.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeNetwork

from lan_recon.core.data_models import Device, DeviceType, Service
from lan_recon.main import create_argument_parser, main
from lan_recon.scanners.port_scanner import PortScanner
from lan_recon.utils.error_handler import DiscoveryError, ToolValidator


@pytest.fixture(autouse=True)
def no_signal_handlers():
    with patch("lan_recon.main.signal.signal"):
        yield


def _scanned_devices():
    return [
        Device(
            mac_address="AA:BB:CC:DD:EE:10",
            ip_address="192.168.1.100",
            hostname="workstation",
            vendor="Dell",
            device_type=DeviceType.LAPTOP,
            services=[
                Service(port=22, service_name="SSH", banner="SSH-2.0-OpenSSH_9.0"),
                Service(port=11434, service_name="Ollama", detected_agent="Ollama"),
            ],
            detected_agents=["Ollama"],
        ),
        Device(mac_address="00:E0:4C:01:02:03", ip_address="192.168.1.1", is_gateway=True,
               device_type=DeviceType.ROUTER),
    ]


def _coordinator(result=None, error=None):
    coordinator = MagicMock()
    coordinator.run_scan = AsyncMock(return_value=result, side_effect=error)
    coordinator.discoverer.detector.get_local_ip.return_value = "192.168.1.42"
    return coordinator


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def test_global_verbose_enables_debug_only():
    args = create_argument_parser().parse_args(["-v", "scan-devices"])
    assert args.debug is True
    assert args.show_banners is False


def test_scan_devices_verbose_shows_banners():
    args = create_argument_parser().parse_args(["scan-devices", "--verbose", "--full", "--output-dir", "out"])
    assert args.debug is False
    assert args.show_banners and args.full
    assert args.output_dir == "out"


def test_scan_ports_arguments():
    args = create_argument_parser().parse_args(["scan-ports", "10.0.0.5", "--all-ports"])
    assert args.ip == "10.0.0.5"
    assert args.all_ports


def test_command_is_required():
    with pytest.raises(SystemExit):
        create_argument_parser().parse_args([])


# =============================================================================
# DISCOVER
# =============================================================================

def test_discover_lists_devices(capsys):
    scanner = MagicMock()
    scanner.discover.return_value = [
        Device(mac_address="AA:BB:CC:DD:EE:20", ip_address="192.168.1.20", hostname="living-room-tv"),
        Device(mac_address="AA:BB:CC:DD:EE:21", ip_address="192.168.1.21"),
    ]
    scanner.detector.get_local_ip.return_value = "192.168.1.42"

    with patch("lan_recon.main.ARPScanner", return_value=scanner):
        assert main(["--skip-checks", "discover", "--full"]) == 0

    scanner.discover.assert_called_once_with(active_sweep=True)
    out = capsys.readouterr().out
    assert "living-room-tv" in out
    assert "AA:BB:CC:DD:EE:21" in out
    assert "2 devices found" in out


def test_discover_fails_preflight_without_tools():
    with patch.object(ToolValidator, "is_available", return_value=False):
        assert main(["discover"]) == 1


def test_discovery_error_exits_with_failure():
    scanner = MagicMock()
    scanner.discover.side_effect = DiscoveryError("Unable to read the ARP table or the route table")

    with patch("lan_recon.main.ARPScanner", return_value=scanner):
        assert main(["--skip-checks", "discover"]) == 1


def test_missing_config_dir_fails(tmp_path):
    assert main(["--config-dir", str(tmp_path / "missing"), "--skip-checks", "discover"]) == 1


# =============================================================================
# SCAN-DEVICES
# =============================================================================

def test_scan_devices_prints_services_and_agents(capsys):
    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator(_scanned_devices())):
        assert main(["--skip-checks", "scan-devices", "--verbose"]) == 0

    out = capsys.readouterr().out
    assert "workstation" in out
    assert "Laptop" in out
    assert "11434  Ollama  [AI: Ollama]" in out
    assert "SSH-2.0-OpenSSH_9.0" in out
    assert "AI AGENTS DETECTED" in out
    assert out.index("192.168.1.1 ") < out.index("192.168.1.100")


def test_scan_devices_hides_banners_by_default(capsys):
    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator(_scanned_devices())):
        main(["--skip-checks", "scan-devices"])

    assert "SSH-2.0-OpenSSH_9.0" not in capsys.readouterr().out


def test_scan_devices_with_no_devices(capsys):
    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator([])):
        assert main(["--skip-checks", "scan-devices"]) == 0

    assert "0 devices found" in capsys.readouterr().out


def test_scan_devices_writes_report(tmp_path):
    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator(_scanned_devices())):
        assert main(["--skip-checks", "scan-devices", "--output-dir", str(tmp_path)]) == 0

    assert len(list(tmp_path.glob("device_scan_*.json"))) == 1


def test_unwritable_report_directory_fails(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator(_scanned_devices())):
        assert main(["--skip-checks", "scan-devices", "--output-dir", str(blocker / "out")]) == 1


def test_cancelled_scan_exits_130():
    with patch("lan_recon.main.ScanCoordinator", return_value=_coordinator(None)):
        assert main(["--skip-checks", "scan-devices"]) == 130


def test_interrupted_scan_exits_130():
    coordinator = _coordinator(error=KeyboardInterrupt())
    with patch("lan_recon.main.ScanCoordinator", return_value=coordinator):
        assert main(["--skip-checks", "scan-devices"]) == 130

    coordinator.cancel.assert_called_once()
    coordinator.close.assert_called_once()


# =============================================================================
# SCAN-PORTS
# =============================================================================

def test_scan_ports_rejects_invalid_ip():
    assert main(["scan-ports", "999.1.1.1"]) == 1


def test_scan_ports_identifies_host(capsys):
    banner = "SSH-2.0-OpenSSH_9.0 " + "x" * 80
    network = FakeNetwork(open_ports={("192.168.1.10", 22): banner.encode()})

    def make_scanner(config, logger, error_handler):
        return PortScanner(config, logger, error_handler, connector=network)

    with patch("lan_recon.main.PortScanner", side_effect=make_scanner):
        assert main(["scan-ports", "192.168.1.10"]) == 0

    out = capsys.readouterr().out
    assert "Device type: Computer" in out
    assert banner[:50] in out
    assert banner[:51] not in out

