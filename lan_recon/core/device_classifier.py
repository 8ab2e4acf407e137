"""
Device classification for lan_recon.

This module assigns a DeviceType to each discovered device from three
sources of evidence, in decreasing order of trust:
- the hostname reported by the ARP table
- whether the device is the default gateway
- open ports combined with the vendor derived from the MAC prefix

Rules form an ordered list and the first matching rule wins.
"""

import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from .data_models import Device, DeviceType
from .vendor_directory import lookup_vendor

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class DeviceEvidence:
    """
    Normalized facts about a device that rules are evaluated against.

    Attributes:
        hostname: Lowercased hostname ("" when unknown)
        tokens: Hostname split on non-alphanumeric characters
        vendor: Lowercased vendor ("" when unknown)
        ports: Open ports
        is_gateway: Whether the device is the default gateway
    """
    hostname: str
    tokens: Tuple[str, ...]
    vendor: str
    ports: FrozenSet[int]
    is_gateway: bool

    @classmethod
    def from_device(cls, device: Device) -> "DeviceEvidence":
        hostname = (device.hostname or "").lower()
        return cls(
            hostname=hostname,
            tokens=tuple(token for token in _TOKEN_SPLIT.split(hostname) if token),
            vendor=(device.vendor or "").lower(),
            ports=frozenset(service.port for service in device.services),
            is_gateway=device.is_gateway,
        )

    def has_port(self, *ports: int) -> bool:
        return any(port in self.ports for port in ports)

    def vendor_is(self, *names: str) -> bool:
        return any(name in self.vendor for name in names)

    def hostname_has(
        self,
        substrings: Iterable[str] = (),
        tokens: Iterable[str] = (),
        suffixes: Iterable[str] = (),
    ) -> bool:
        """
        Match the hostname on substrings, whole tokens or token suffixes.

        Short keywords go in ``tokens`` so that "switch" does not fire on
        "switchbot" and "arch" does not fire on "archer". ``suffixes`` match
        the end of a token, so "nas" fires on "mynas" but not on "dynasty".
        """
        if not self.hostname:
            return False
        if any(substring in self.hostname for substring in substrings):
            return True
        token_set = set(tokens)
        suffixes = tuple(suffixes)
        return any(
            token in token_set or (suffixes and token.endswith(suffixes))
            for token in self.tokens
        )


@dataclass(frozen=True)
class ClassificationRule:
    """
    A single step of the classification cascade.

    Attributes:
        name: Human-readable name for the rule
        device_type: The device type this rule classifies to
        predicate: Test applied to the device evidence
    """
    name: str
    device_type: DeviceType
    predicate: Callable[[DeviceEvidence], bool]

    def matches(self, evidence: DeviceEvidence) -> bool:
        return self.predicate(evidence)


# Hostname keyword sets

_TV_SUBSTRINGS = (
    "appletv", "apple-tv", "smarttv", "smart-tv", "androidtv", "googletv",
    "chromecast", "firetv", "fire-tv", "roku", "bravia", "webos", "tizen",
    "shield", "vizio", "tv",
)

_CONSOLE_SUBSTRINGS = ("playstation", "xbox", "nintendo", "steamdeck", "steam-deck")
_CONSOLE_TOKENS = ("ps3", "ps4", "ps5", "switch", "wii", "wiiu")

_PHONE_SUBSTRINGS = ("iphone", "ipad")

_COMPUTER_SUBSTRINGS = (
    "macbook", "imac", "macmini", "mac-mini", "macpro", "mac-pro",
    "desktop", "workstation", "ubuntu", "debian", "fedora", "archlinux",
    "manjaro", "centos", "opensuse", "kali", "popos", "pop-os",
)
_COMPUTER_TOKENS = ("mac", "pc", "arch", "linux", "mint", "suse")

_IOT_SUBSTRINGS = ("shelly", "tasmota", "tuya", "sonoff", "wled", "switchbot", "yeelight")

_PRINTER_SUBSTRINGS = (
    "printer", "laserjet", "officejet", "deskjet", "brother", "epson",
    "canon", "xerox", "kyocera", "lexmark",
)
_PRINTER_TOKENS = ("mfc", "npi")

_NAS_SUBSTRINGS = ("synology", "diskstation", "qnap", "truenas", "freenas", "unraid", "readynas")
_NAS_SUFFIXES = ("nas",)

_ROUTER_SUBSTRINGS = (
    "router", "gateway", "openwrt", "dd-wrt", "ubnt", "unifi", "tplink",
    "tp-link", "netgear", "linksys", "fritz", "eero", "orbi", "mikrotik",
    "archer", "asusrouter", "accesspoint", "access-point",
)
_ROUTER_TOKENS = ("ap", "rt", "wap")

# Vendor keyword sets

_TV_VENDORS = ("roku", "sonos")
_NAS_VENDORS = ("synology", "qnap")
_LAPTOP_VENDORS = ("dell", "lenovo", "hp")
_IOT_VENDORS = ("espressif", "amazon", "shelly")
_NETWORK_VENDORS = ("tp-link", "netgear", "asus", "ubiquiti", "cisco")
_PHONE_VENDORS = ("samsung", "xiaomi", "google", "huawei")


def _has_esp_token(evidence: DeviceEvidence) -> bool:
    return any(token.startswith("esp") for token in evidence.tokens)


def _build_rules() -> List[ClassificationRule]:
    return [
        # Hostname rules
        ClassificationRule(
            "Hostname: TV or media player", DeviceType.SMART_TV,
            lambda e: e.hostname_has(_TV_SUBSTRINGS)),
        ClassificationRule(
            "Hostname: game console", DeviceType.GAME_CONSOLE,
            lambda e: e.hostname_has(_CONSOLE_SUBSTRINGS, _CONSOLE_TOKENS)),
        ClassificationRule(
            "Hostname: iPhone or iPad", DeviceType.PHONE,
            lambda e: e.hostname_has(_PHONE_SUBSTRINGS)),
        ClassificationRule(
            "Hostname: computer", DeviceType.COMPUTER,
            lambda e: e.hostname_has(_COMPUTER_SUBSTRINGS, _COMPUTER_TOKENS)),
        ClassificationRule(
            "Hostname: IoT firmware or brand", DeviceType.IOT,
            lambda e: e.hostname_has(_IOT_SUBSTRINGS) or _has_esp_token(e)),
        ClassificationRule(
            "Hostname: printer", DeviceType.PRINTER,
            lambda e: e.hostname_has(_PRINTER_SUBSTRINGS, _PRINTER_TOKENS)),
        ClassificationRule(
            "Hostname: NAS", DeviceType.NAS,
            lambda e: e.hostname_has(_NAS_SUBSTRINGS, suffixes=_NAS_SUFFIXES)),
        ClassificationRule(
            "Hostname: router or access point", DeviceType.ROUTER,
            lambda e: e.hostname_has(_ROUTER_SUBSTRINGS, _ROUTER_TOKENS)),

        ClassificationRule(
            "Default gateway", DeviceType.ROUTER,
            lambda e: e.is_gateway),

        # Port and vendor rules
        ClassificationRule(
            "DNS with web management", DeviceType.ROUTER,
            lambda e: e.has_port(53) and e.has_port(80, 443)),
        ClassificationRule(
            "Apple with iPhone sync port", DeviceType.PHONE,
            lambda e: e.has_port(62078) and e.vendor_is("apple")),
        ClassificationRule(
            "Apple with SSH or AFP", DeviceType.COMPUTER,
            lambda e: e.vendor_is("apple") and e.has_port(22, 548)),
        ClassificationRule(
            "Apple", DeviceType.PHONE,
            lambda e: e.vendor_is("apple")),
        ClassificationRule(
            "Chromecast ports", DeviceType.SMART_TV,
            lambda e: e.has_port(8008, 8009, 9197)),
        ClassificationRule(
            "Samsung or LG without SSH", DeviceType.SMART_TV,
            lambda e: e.vendor_is("samsung", "lg") and not e.has_port(22)),
        ClassificationRule(
            "Roku or Sonos", DeviceType.SMART_TV,
            lambda e: e.vendor_is(*_TV_VENDORS)),
        ClassificationRule(
            "Nintendo", DeviceType.GAME_CONSOLE,
            lambda e: e.vendor_is("nintendo")),
        ClassificationRule(
            "Sony without SSH", DeviceType.GAME_CONSOLE,
            lambda e: e.vendor_is("sony") and not e.has_port(22)),
        ClassificationRule(
            "NAS port signature", DeviceType.NAS,
            lambda e: e.has_port(22, 23) and e.has_port(445, 548) and e.has_port(5000, 5001)),
        ClassificationRule(
            "NAS vendor", DeviceType.NAS,
            lambda e: e.vendor_is(*_NAS_VENDORS)),
        ClassificationRule(
            "Printer ports", DeviceType.PRINTER,
            lambda e: e.has_port(9100, 631)),
        ClassificationRule(
            "HP with web and no SSH", DeviceType.PRINTER,
            lambda e: e.vendor_is("hp") and e.has_port(80) and not e.has_port(22)),
        ClassificationRule(
            "Laptop vendor with SSH or RDP", DeviceType.LAPTOP,
            lambda e: e.has_port(22, 3389) and e.vendor_is(*_LAPTOP_VENDORS)),
        ClassificationRule(
            "SSH or RDP", DeviceType.COMPUTER,
            lambda e: e.has_port(22, 3389)),
        ClassificationRule(
            "IoT vendor", DeviceType.IOT,
            lambda e: e.vendor_is(*_IOT_VENDORS)),
        ClassificationRule(
            "Network vendor with web management", DeviceType.ROUTER,
            lambda e: e.vendor_is(*_NETWORK_VENDORS) and e.has_port(80, 443)),
        ClassificationRule(
            "Phone vendor", DeviceType.PHONE,
            lambda e: e.vendor_is(*_PHONE_VENDORS)),
        ClassificationRule(
            "Raspberry Pi", DeviceType.COMPUTER,
            lambda e: e.vendor_is("raspberry")),
    ]


class DeviceClassifier:
    """
    Ordered rule cascade assigning device types and collecting agents.

    Classification is a pure function of hostname, vendor, gateway flag and
    open ports, so running it twice gives the same answer.
    """

    def __init__(self, rules: Optional[List[ClassificationRule]] = None):
        """
        Initialize the device classifier.

        Args:
            rules: Replacement rule list (default: built-in cascade)
        """
        self.rules = rules if rules is not None else _build_rules()

    def match_rule(self, device: Device) -> Optional[ClassificationRule]:
        """Return the first rule matching the device, or None."""
        evidence = DeviceEvidence.from_device(device)
        for rule in self.rules:
            if rule.matches(evidence):
                return rule
        return None

    def infer_device_type(self, device: Device) -> DeviceType:
        rule = self.match_rule(device)
        return rule.device_type if rule else DeviceType.UNKNOWN

    def identify(self, device: Device) -> Device:
        """
        Fill in vendor, device type and detected agents.

        Args:
            device: Device with whatever evidence is available

        Returns:
            The same device, updated in place
        """
        if device.vendor is None:
            device.vendor = lookup_vendor(device.mac_address)

        device.device_type = self.infer_device_type(device)
        device.detected_agents = collect_agents(device)
        return device

    def identify_all(self, devices: List[Device]) -> List[Device]:
        for device in devices:
            self.identify(device)
        return devices


def collect_agents(device: Device) -> List[str]:
    """Distinct non-empty agent names from the device's services, in order."""
    agents: List[str] = []
    for service in device.services:
        if service.detected_agent and service.detected_agent not in agents:
            agents.append(service.detected_agent)
    return agents
