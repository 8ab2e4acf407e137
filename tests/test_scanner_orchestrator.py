"""
Tests for scan coordination: phased progress, stale event suppression,
cancellation and single-flight scans.
"""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest
from conftest import FakeNetwork

from lan_recon.config.config_loader import PortScanConfig, ScanConfig
from lan_recon.core.data_models import Device, DeviceType, ScanPhase, ScanProgress
from lan_recon.core.scanner_orchestrator import ProgressTracker, ScanCoordinator
from lan_recon.scanners.port_scanner import PortScanner
from lan_recon.storage.device_store import InMemoryDeviceStore
from lan_recon.utils.error_handler import DiscoveryError, PortListError, ScanInProgressError


class StubPortScanner:
    """Port scanner that emits a scripted list of events and opens nothing."""

    def __init__(self, events=()):
        self.events = list(events)

    async def scan_ports(self, devices, ports=None, progress=None):
        for event in self.events:
            progress(event)
        return devices


class BlockingDiscoverer:
    """Discoverer that holds its worker thread until released."""

    def __init__(self, devices=None):
        self.devices = devices or []
        self.release = threading.Event()

    def discover(self, active_sweep=False):
        self.release.wait(timeout=5)
        return list(self.devices)


def _devices():
    return [
        Device(mac_address="AA:BB:CC:DD:EE:01", ip_address="192.168.1.10"),
        Device(mac_address="B8:27:EB:00:00:02", ip_address="192.168.1.11", hostname="living-room-tv"),
    ]


@pytest.fixture
def discoverer():
    mock = MagicMock()
    mock.discover.return_value = _devices()
    return mock


@pytest.fixture
def coordinator_factory(quiet_logger, error_handler):
    created = []

    def factory(**kwargs):
        kwargs.setdefault("port_scanner", StubPortScanner())
        coordinator = ScanCoordinator(ScanConfig(), quiet_logger, error_handler, **kwargs)
        created.append(coordinator)
        return coordinator

    yield factory
    for coordinator in created:
        coordinator.close()


async def _finish_pipelines(coordinator):
    await asyncio.gather(*list(coordinator._tasks))


# =============================================================================
# PROGRESS TRACKER
# =============================================================================

def test_tracker_discards_phase_regressions():
    tracker = ProgressTracker()
    events = [
        ScanProgress(ScanPhase.DISCOVERY),
        ScanProgress(ScanPhase.PORT_SCAN),
        ScanProgress(ScanPhase.DISCOVERY),
        ScanProgress(ScanPhase.IDENTIFICATION),
        ScanProgress(ScanPhase.PORT_SCAN),
        ScanProgress.complete([]),
    ]

    applied = [tracker.apply(event) for event in events]

    assert applied == [True, True, False, True, False, True]
    assert tracker.current.phase is ScanPhase.COMPLETE


def test_tracker_accepts_repeated_phase():
    tracker = ProgressTracker()
    assert tracker.apply(ScanProgress(ScanPhase.PORT_SCAN, ports_scanned=10))
    assert tracker.apply(ScanProgress(ScanPhase.PORT_SCAN, ports_scanned=20))
    assert tracker.current.ports_scanned == 20


# =============================================================================
# POLLING
# =============================================================================

@pytest.mark.asyncio
async def test_check_progress_applies_events_in_phase_order(coordinator_factory, discoverer):
    coordinator = coordinator_factory(discoverer=discoverer)
    queue = coordinator.start_scan()
    devices = _devices()

    events = [
        ScanProgress(ScanPhase.DISCOVERY, devices_found=2),
        ScanProgress(ScanPhase.PORT_SCAN, devices_found=2, ports_scanned=27),
        ScanProgress(ScanPhase.DISCOVERY, devices_found=1),
        ScanProgress(ScanPhase.IDENTIFICATION, devices_found=2),
        ScanProgress(ScanPhase.PORT_SCAN, devices_found=2, ports_scanned=54),
    ]
    seen = []
    for event in events:
        queue.put_nowait(event)
        assert coordinator.check_progress() is None
        seen.append(coordinator.progress)

    assert seen == [events[0], events[1], events[1], events[3], events[3]]

    queue.put_nowait(ScanProgress.complete(devices))
    assert coordinator.check_progress() == devices
    assert not coordinator.is_scanning
    assert coordinator.last_result == devices

    await _finish_pipelines(coordinator)


@pytest.mark.asyncio
async def test_check_progress_without_scan(coordinator_factory, discoverer):
    coordinator = coordinator_factory(discoverer=discoverer)
    assert coordinator.check_progress() is None
    assert coordinator.progress is None


# =============================================================================
# FULL RUNS
# =============================================================================

@pytest.mark.asyncio
async def test_run_scan_returns_identified_devices(coordinator_factory, discoverer, quiet_logger):
    network = FakeNetwork(open_ports={
        ("192.168.1.10", 22): b"SSH-2.0-OpenSSH_9.0\r\n",
        ("192.168.1.11", 22): b"SSH-2.0-OpenSSH_9.0\r\n",
        ("192.168.1.11", 11434): b"Ollama is running",
    })
    port_scanner = PortScanner(PortScanConfig(connect_timeout=0.05, banner_timeout=0.05),
                               quiet_logger, connector=network)
    store = InMemoryDeviceStore()
    coordinator = coordinator_factory(
        discoverer=discoverer, port_scanner=port_scanner, store=store, network_id="home"
    )
    phases = []

    devices = await coordinator.run_scan(on_progress=lambda e: phases.append(e.phase))

    by_mac = {d.mac_address: d for d in devices}
    assert by_mac["AA:BB:CC:DD:EE:01"].device_type == DeviceType.COMPUTER
    assert by_mac["B8:27:EB:00:00:02"].device_type == DeviceType.SMART_TV
    assert by_mac["B8:27:EB:00:00:02"].vendor == "Raspberry Pi"
    assert by_mac["B8:27:EB:00:00:02"].detected_agents == ["Ollama"]

    assert phases[0] is ScanPhase.DISCOVERY
    assert phases.count(ScanPhase.PORT_SCAN) == 2
    assert phases[-2:] == [ScanPhase.IDENTIFICATION, ScanPhase.COMPLETE]

    assert len(store.devices) == 2
    assert [s.port for s in store.services_for("B8:27:EB:00:00:02")] == [22, 11434]
    assert store.devices["B8:27:EB:00:00:02"].network_id == "home"
    assert not coordinator.was_cancelled


@pytest.mark.asyncio
async def test_failing_store_does_not_lose_result(coordinator_factory, discoverer):
    store = MagicMock()
    store.upsert_device.side_effect = RuntimeError("connection reset")
    coordinator = coordinator_factory(discoverer=discoverer, store=store)

    devices = await coordinator.run_scan()

    assert len(devices) == 2
    assert coordinator.last_result == devices
    assert not coordinator.is_scanning


@pytest.mark.asyncio
async def test_stale_events_from_scanner_are_not_reported(coordinator_factory, discoverer):
    port_scanner = StubPortScanner([
        ScanProgress(ScanPhase.PORT_SCAN, devices_found=2, ports_scanned=27, total_ports=54),
        ScanProgress(ScanPhase.DISCOVERY, devices_found=5),
        ScanProgress(ScanPhase.PORT_SCAN, devices_found=2, ports_scanned=54, total_ports=54),
    ])
    coordinator = coordinator_factory(discoverer=discoverer, port_scanner=port_scanner)
    reported = []

    await coordinator.run_scan(on_progress=reported.append)

    assert [e.phase for e in reported] == [
        ScanPhase.DISCOVERY,
        ScanPhase.DISCOVERY,
        ScanPhase.PORT_SCAN,
        ScanPhase.PORT_SCAN,
        ScanPhase.IDENTIFICATION,
        ScanPhase.COMPLETE,
    ]
    assert all(e.devices_found != 5 for e in reported)


@pytest.mark.asyncio
async def test_empty_network_is_not_an_error(coordinator_factory):
    empty = MagicMock()
    empty.discover.return_value = []
    coordinator = coordinator_factory(discoverer=empty)

    assert await coordinator.run_scan() == []


@pytest.mark.asyncio
async def test_discovery_error_reaches_caller(coordinator_factory):
    failing = MagicMock()
    failing.discover.side_effect = DiscoveryError("Unable to read the ARP table or the route table")
    coordinator = coordinator_factory(discoverer=failing)

    with pytest.raises(DiscoveryError):
        await coordinator.run_scan()

    assert not coordinator.is_scanning


@pytest.mark.asyncio
async def test_port_list_error_reaches_caller(coordinator_factory, discoverer, quiet_logger):
    port_scanner = PortScanner(PortScanConfig(ports=()), quiet_logger, connector=FakeNetwork())
    coordinator = coordinator_factory(discoverer=discoverer, port_scanner=port_scanner)

    with pytest.raises(PortListError):
        await coordinator.run_scan()


@pytest.mark.asyncio
async def test_active_sweep_flag_reaches_discoverer(coordinator_factory, discoverer):
    coordinator = coordinator_factory(discoverer=discoverer)

    await coordinator.run_scan(active_sweep=True)

    discoverer.discover.assert_called_once_with(True)


# =============================================================================
# SINGLE FLIGHT AND CANCELLATION
# =============================================================================

@pytest.mark.asyncio
async def test_second_scan_while_running_is_rejected(coordinator_factory):
    blocking = BlockingDiscoverer()
    coordinator = coordinator_factory(discoverer=blocking)

    coordinator.start_scan()
    with pytest.raises(ScanInProgressError):
        coordinator.start_scan()

    blocking.release.set()
    while coordinator.check_progress() is None:
        await asyncio.sleep(0.01)
    await _finish_pipelines(coordinator)


@pytest.mark.asyncio
async def test_cancel_discards_result(coordinator_factory):
    blocking = BlockingDiscoverer(_devices())
    coordinator = coordinator_factory(discoverer=blocking)

    task = asyncio.ensure_future(coordinator.run_scan())
    await asyncio.sleep(0.01)
    assert coordinator.is_scanning

    coordinator.cancel()

    assert coordinator.was_cancelled
    assert not coordinator.is_scanning
    assert coordinator.progress is None

    blocking.release.set()
    assert await task is None
    assert coordinator.last_result is None
    await _finish_pipelines(coordinator)


@pytest.mark.asyncio
async def test_cancel_returns_while_discovery_still_runs(coordinator_factory):
    blocking = BlockingDiscoverer(_devices())
    coordinator = coordinator_factory(discoverer=blocking)

    task = asyncio.ensure_future(coordinator.run_scan(active_sweep=True))
    await asyncio.sleep(0.05)
    coordinator.cancel()

    try:
        assert await asyncio.wait_for(task, timeout=0.5) is None
        assert not blocking.release.is_set()
    finally:
        blocking.release.set()
    await _finish_pipelines(coordinator)


@pytest.mark.asyncio
async def test_new_scan_allowed_after_cancel(coordinator_factory):
    blocking = BlockingDiscoverer(_devices())
    coordinator = coordinator_factory(discoverer=blocking)

    coordinator.start_scan()
    coordinator.cancel()
    coordinator.start_scan()
    assert not coordinator.was_cancelled

    blocking.release.set()
    result = None
    while result is None:
        await asyncio.sleep(0.01)
        result = coordinator.check_progress()

    assert len(result) == 2
    await _finish_pipelines(coordinator)


def test_cancel_without_scan_is_noop(coordinator_factory, discoverer):
    coordinator = coordinator_factory(discoverer=discoverer)
    coordinator.cancel()
    assert not coordinator.was_cancelled
