"""
Tests for the device classification cascade.
"""

import pytest

from lan_recon.core.data_models import Device, DeviceType, Service
from lan_recon.core.device_classifier import (
    ClassificationRule,
    DeviceClassifier,
    DeviceEvidence,
    collect_agents,
)


def _device(hostname=None, vendor=None, ports=(), is_gateway=False, agents=None,
            mac="10:00:00:00:00:01"):
    agents = agents or {}
    return Device(
        mac_address=mac,
        ip_address="192.168.1.50",
        hostname=hostname,
        vendor=vendor,
        services=[Service(port=p, detected_agent=agents.get(p)) for p in ports],
        is_gateway=is_gateway,
    )


@pytest.fixture
def classifier():
    return DeviceClassifier()


# =============================================================================
# HOSTNAME RULES
# =============================================================================

@pytest.mark.parametrize("hostname,expected", [
    ("living-room-tv", DeviceType.SMART_TV),
    ("Roku-Ultra", DeviceType.SMART_TV),
    ("PS5-Console", DeviceType.GAME_CONSOLE),
    ("nintendo-switch", DeviceType.GAME_CONSOLE),
    ("Johns-iPhone", DeviceType.PHONE),
    ("kitchen-ipad", DeviceType.PHONE),
    ("Janes-MacBook-Pro", DeviceType.COMPUTER),
    ("dev-pc", DeviceType.COMPUTER),
    ("shelly1-abc123", DeviceType.IOT),
    ("esp32-garage", DeviceType.IOT),
    ("switchbot-hub", DeviceType.IOT),
    ("HP-LaserJet-400", DeviceType.PRINTER),
    ("DiskStation", DeviceType.NAS),
    ("home-nas", DeviceType.NAS),
    ("archer-c7", DeviceType.ROUTER),
    ("office-ap", DeviceType.ROUTER),
    ("LivingRoomTV", DeviceType.SMART_TV),
    ("SamsungTV", DeviceType.SMART_TV),
    ("LGTV-bedroom", DeviceType.SMART_TV),
    ("MyNAS", DeviceType.NAS),
])
def test_hostname_rules(classifier, hostname, expected):
    assert classifier.infer_device_type(_device(hostname=hostname)) == expected


@pytest.mark.parametrize("hostname,expected", [
    ("living-room-tv", DeviceType.SMART_TV),
    ("LivingRoomTV", DeviceType.SMART_TV),
    ("SamsungTV", DeviceType.SMART_TV),
    ("LGTV-bedroom", DeviceType.SMART_TV),
    ("MyNAS", DeviceType.NAS),
])
def test_hostname_beats_ports(classifier, hostname, expected):
    device = _device(hostname=hostname, ports=[22])
    assert classifier.infer_device_type(device) == expected


def test_hostname_beats_gateway(classifier):
    device = _device(hostname="openwrt", is_gateway=True)
    assert classifier.match_rule(device).name.startswith("Hostname")


def test_short_keywords_match_whole_tokens_only(classifier):
    assert classifier.infer_device_type(_device(hostname="laptop")) == DeviceType.UNKNOWN
    assert classifier.infer_device_type(_device(hostname="dynasty")) == DeviceType.UNKNOWN


# =============================================================================
# GATEWAY, PORT AND VENDOR RULES
# =============================================================================

def test_gateway_is_router(classifier):
    assert classifier.infer_device_type(_device(is_gateway=True, ports=[22])) == DeviceType.ROUTER


@pytest.mark.parametrize("vendor,ports,expected", [
    (None, [53, 80], DeviceType.ROUTER),
    ("Apple", [62078], DeviceType.PHONE),
    ("Apple", [22], DeviceType.COMPUTER),
    ("Apple", [], DeviceType.PHONE),
    (None, [8009], DeviceType.SMART_TV),
    ("Samsung", [], DeviceType.SMART_TV),
    ("Samsung", [22], DeviceType.COMPUTER),
    ("Sonos", [], DeviceType.SMART_TV),
    ("Nintendo", [], DeviceType.GAME_CONSOLE),
    ("Sony", [], DeviceType.GAME_CONSOLE),
    (None, [22, 445, 5000], DeviceType.NAS),
    ("Synology", [], DeviceType.NAS),
    (None, [9100], DeviceType.PRINTER),
    ("HP", [80], DeviceType.PRINTER),
    ("Dell", [3389], DeviceType.LAPTOP),
    (None, [22], DeviceType.COMPUTER),
    ("Espressif", [], DeviceType.IOT),
    ("Shelly", [80], DeviceType.IOT),
    ("TP-Link", [443], DeviceType.ROUTER),
    ("Xiaomi", [], DeviceType.PHONE),
    ("Raspberry Pi", [], DeviceType.COMPUTER),
    ("Intel", [], DeviceType.UNKNOWN),
    (None, [], DeviceType.UNKNOWN),
])
def test_port_and_vendor_rules(classifier, vendor, ports, expected):
    assert classifier.infer_device_type(_device(vendor=vendor, ports=ports)) == expected


# =============================================================================
# IDENTIFY
# =============================================================================

def test_identify_looks_up_vendor(classifier):
    device = classifier.identify(_device(mac="B8:27:EB:00:00:01"))

    assert device.vendor == "Raspberry Pi"
    assert device.device_type == DeviceType.COMPUTER


def test_identify_keeps_known_vendor(classifier):
    device = classifier.identify(_device(vendor="Synology", mac="B8:27:EB:00:00:01"))
    assert device.vendor == "Synology"


def test_identify_is_idempotent(classifier):
    device = _device(hostname="esp-kitchen", ports=[80, 11434], agents={11434: "Ollama"})

    classifier.identify(device)
    first = (device.device_type, list(device.detected_agents), device.vendor)
    classifier.identify(device)

    assert (device.device_type, device.detected_agents, device.vendor) == first


def test_collect_agents_is_distinct_and_ordered():
    device = _device(ports=[80, 8080, 11434], agents={80: "OpenClaw", 8080: "Ollama", 11434: "Ollama"})
    assert collect_agents(device) == ["OpenClaw", "Ollama"]


def test_custom_rules_replace_cascade():
    rule = ClassificationRule("Everything is a printer", DeviceType.PRINTER, lambda e: True)
    classifier = DeviceClassifier(rules=[rule])

    assert classifier.infer_device_type(_device(hostname="living-room-tv")) == DeviceType.PRINTER
    assert DeviceClassifier(rules=[]).infer_device_type(_device()) == DeviceType.UNKNOWN


def test_evidence_tokens():
    evidence = DeviceEvidence.from_device(_device(hostname="Living-Room_TV.local"))
    assert evidence.tokens == ("living", "room", "tv", "local")
