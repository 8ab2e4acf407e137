"""
Tests for persisting completed scans.
"""

from unittest.mock import MagicMock

import pytest

from lan_recon.core.data_models import Device, DeviceType, PortState, Service
from lan_recon.storage.device_store import InMemoryDeviceStore, persist_devices
from lan_recon.utils.error_handler import ErrorType, StorageError


def _device(mac="AA:BB:CC:DD:EE:01", ip="192.168.1.10", **kwargs):
    return Device(mac_address=mac, ip_address=ip, **kwargs)


@pytest.fixture
def store():
    return InMemoryDeviceStore()


# === UPSERTS ===

def test_upsert_device_is_idempotent(store):
    first = store.upsert_device("aa:bb:cc:dd:ee:01", "192.168.1.10", "nas", "Synology", "NAS", None, "home")
    second = store.upsert_device("AA:BB:CC:DD:EE:01", "192.168.1.99", None, "Synology", "NAS", None, "home")

    assert first == second
    assert len(store.devices) == 1
    stored = store.devices["AA:BB:CC:DD:EE:01"]
    assert stored.ip_address == "192.168.1.99"
    assert stored.hostname == "nas"


def test_custom_name_survives_rescan(store):
    store.upsert_device("AA:BB:CC:DD:EE:01", "192.168.1.10", None, None, "Unknown", "Office NAS", None)
    store.upsert_device("AA:BB:CC:DD:EE:01", "192.168.1.10", None, None, "NAS", None, None)

    assert store.devices["AA:BB:CC:DD:EE:01"].custom_name == "Office NAS"


def test_upsert_service_by_port_and_protocol(store):
    device_id = store.upsert_device("AA:BB:CC:DD:EE:01", "192.168.1.10", None, None, "Unknown", None, None)

    store.upsert_device_service(device_id, 22, "TCP", "SSH", "SSH-2.0-old", None)
    store.upsert_device_service(device_id, 22, "TCP", "SSH", "SSH-2.0-new", None)

    services = store.services_for("AA:BB:CC:DD:EE:01")
    assert len(services) == 1
    assert services[0].banner == "SSH-2.0-new"


def test_service_for_unknown_device_fails(store):
    with pytest.raises(StorageError):
        store.upsert_device_service(42, 22, "TCP", "SSH", None, None)


# === PERSIST ===

def test_persist_writes_open_services_only(store, quiet_logger):
    device = _device(
        device_type=DeviceType.COMPUTER,
        services=[
            Service(port=22, service_name="SSH"),
            Service(port=80, state=PortState.CLOSED),
            Service(port=11434, service_name="Ollama", detected_agent="Ollama"),
        ],
    )

    assert persist_devices(store, [device], "home", quiet_logger) == 1

    stored = store.devices["AA:BB:CC:DD:EE:01"]
    assert stored.device_type == "Computer"
    assert stored.network_id == "home"
    services = store.services_for("AA:BB:CC:DD:EE:01")
    assert [(s.port, s.protocol, s.detected_agent) for s in services] == [
        (22, "TCP", None),
        (11434, "TCP", "Ollama"),
    ]


def test_persist_skips_failing_device(quiet_logger, error_handler):
    backing = InMemoryDeviceStore()
    store = MagicMock(wraps=backing)

    def upsert_device(mac, *args):
        if mac.endswith("02"):
            raise StorageError("disk full")
        return backing.upsert_device(mac, *args)

    store.upsert_device.side_effect = upsert_device
    devices = [_device(), _device(mac="AA:BB:CC:DD:EE:02", ip="192.168.1.11"), _device(mac="AA:BB:CC:DD:EE:03")]

    assert persist_devices(store, devices, None, quiet_logger, error_handler) == 2
    assert set(backing.devices) == {"AA:BB:CC:DD:EE:01", "AA:BB:CC:DD:EE:03"}
    assert error_handler.get_error_summary() == {ErrorType.STORAGE_ERROR.value: 1}


def test_persisting_same_scan_twice_changes_nothing(store, quiet_logger):
    devices = [_device(services=[Service(port=22, service_name="SSH")])]

    persist_devices(store, devices, None, quiet_logger)
    persist_devices(store, devices, None, quiet_logger)

    assert len(store.devices) == 1
    assert len(store.services) == 1
