"""
MAC prefix (OUI) to vendor lookup.

The table is curated rather than complete: it covers the consumer,
networking and IoT chipset vendors that show up on home and office LANs.
Groups are applied in order, so a prefix listed under a later vendor
replaces an earlier assignment.
"""

import re
from typing import Dict, Optional, Tuple

RANDOMIZED_VENDOR = "Private/Randomized"

# Second hex digit of the first octet for locally administered addresses
_LOCAL_ADMIN_NIBBLES = frozenset("26AE")

_SEPARATORS = re.compile(r"[:\-.]")

_VENDOR_GROUPS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Apple", (
        "0026BB", "3C5AB4", "A4C361", "F0D1A9", "D0817A", "B8E856", "8866A5",
        "28E02C", "F0DCE2", "64A5C3", "48A195",
    )),
    ("Samsung", (
        "002119", "34145F", "50A4C8", "78BD9D", "84119E", "8C71F8", "9463D1",
        "ACE4B5", "BC8CCD",
    )),
    ("Google", (
        "001A11", "3C5AB4", "54608C", "94EB2C", "F4F5D8", "F4F5E8",
    )),
    ("Intel", (
        "001111", "001302", "001500", "0016EA", "001B21", "3C970E", "485B39",
        "5CE0C5", "8086F2",
    )),
    # ESP32/ESP8266 modules, found in Shelly, Sonoff, Tuya and most DIY IoT
    ("Espressif", (
        "240AC4", "24B2DE", "2C3AE8", "30AEA4", "5CCF7F", "84CCA8", "A4CF12",
        "ECFABC", "08B61F", "08F9E0", "10521C", "10914F", "18FE34", "24D7EB",
        "2462AB", "283734", "2C9114", "2CF432", "2EC8EB", "3010DE", "303A64",
        "34864A", "34945B", "34AB95", "3C61EC", "3C71BF", "404CCA", "40F520",
        "44179B", "480FD2", "48E729", "4C11AE", "4C7525", "500291", "5C0133",
        "60019D", "60A5E2", "64A2F9", "64B7B7", "683E34", "68B6B3", "68C63A",
        "78E36D", "7C87CE", "807D3A", "84F703", "880BC9", "8C4B14", "8C7C92",
        "8CAAB5", "90380C", "98CDAC", "98F4AB", "A020A6", "A0D4F0", "A4E57C",
        "A8032A", "AC0BFB", "AC67B2", "B0B21C", "B4E62D", "BC8A8C", "BCDD37",
        "C45BBE", "C8C9A3", "CC50E3", "D8A01D", "D8BFC0", "D8F15B", "DC4F22",
        "E0E2E6", "E8DB84", "EC6260", "EC94D3", "F008D1", "F4CFA2", "FC019B",
        "FCF5C4",
    )),
    # Allterco assigns some Shelly devices its own prefixes
    ("Shelly", (
        "34945B", "483FDA", "84CCA8", "E8DB84", "EC6260",
    )),
    ("Amazon", (
        "0C47C9", "18B4A6", "34D270", "40B4CD", "50DCE7", "687D6B", "747548",
        "A002DC", "FC65DE",
    )),
    # 01:00:5E is IPv4 multicast
    ("Multicast", ("01005E",)),
    ("Xiaomi", (
        "00EC0A", "0C1DAF", "286C07", "34CE00", "50A728", "64B473", "74D4DD",
        "78112F", "9C99A0", "AC3743", "F8A45F",
    )),
    ("Microsoft", (
        "001DD8", "0050F2", "28186D", "50579C", "7CB27D", "B483E7", "C83DD4",
    )),
    ("Realtek", (
        "00E04C", "00044B", "001F1F", "20CF30", "48E24B", "52540B", "54E1AD",
        "74DA38", "801F02", "94DE80", "98541B", "D8EB46", "E04F43", "EC086B",
    )),
    ("Intel", (
        "001111", "001302", "001517", "0016EA", "002314", "00215D", "3413E8",
        "384697", "485D36", "5CC5D4", "606720", "645A04", "6C883C", "7C5CF8",
        "80861F", "848F69", "94659C", "985FD3", "A0369F", "A4C494", "B8088C",
        "CC2F71", "DC536C", "E4B97A",
    )),
    ("TP-Link", (
        "001470", "14CC20", "1C3BF3", "30B5C2", "503EAA", "54E6FC", "90F652",
        "C025E9", "D80D17",
    )),
    ("Netgear", (
        "0024B2", "00265A", "20E52A", "28C68E", "6038E0", "744401", "9C3DCF",
        "A42B8C", "C03F0E",
    )),
    ("ASUS", (
        "001731", "04421A", "08606E", "14DAE9", "2C4D54", "50465D", "74D02B",
        "ACDE48", "F46D04", "C87F54", "1831BF", "2CFDA1", "34977A", "38D547",
        "4CEDFB", "60A44C", "707781", "90E6BA", "9C5C8E", "AC9E17", "B06EBF",
        "BC5C4C", "D850E6", "E03F49", "F832E4", "FCAA14",
    )),
    ("Dell", (
        "001422", "14187D", "149182", "18A99B", "28F10E", "34E6D7", "5C260A",
        "74E6E2", "D89EF3",
    )),
    ("HP", (
        "001083", "001185", "001635", "001708", "10604B", "28924A", "3C4A92",
        "80CE62", "D42C44",
    )),
    ("Lenovo", (
        "002482", "347083", "4C5262", "60D819", "6C0B84", "C4D0E3", "E83934",
        "F82FA8",
    )),
    ("Synology", ("0011A0", "001132")),
    ("Raspberry Pi", ("B827EB", "DCA632", "E45F01")),
    ("Sony", (
        "000AD9", "001315", "001A80", "28A02B", "40B837", "8C4909", "A85B61",
        "F8DA0C",
    )),
    ("LG", (
        "001256", "10F96F", "340804", "64899A", "78F882", "9CA39B", "A8F274",
        "C83870",
    )),
    ("Nintendo", (
        "001656", "002331", "34AF2C", "582F40", "7CBB8A", "98B6E9", "A438CC",
        "E84ECE",
    )),
    ("Ubiquiti", (
        "00156D", "002722", "18E829", "44D9E7", "68D79A", "788A20", "802AA8",
        "FCFFD4",
    )),
    ("Xiaomi", (
        "0C1DAF", "28E31F", "50647B", "64B473", "7C1DD9", "98FAE3", "AC1E92",
        "F0B429",
    )),
    ("Huawei", (
        "000D9E", "001882", "0025D7", "24DF6A", "5C7D5E", "70700D", "88CEFA",
        "C8D15E",
    )),
    ("Cisco", (
        "000142", "001A6D", "002155", "00259C", "28940F", "38ED18", "5475D0",
        "8851FB",
    )),
    ("Sonos", (
        "000E58", "5494F3", "5CAAFD", "78283C", "94DAAE", "B8E937",
    )),
    ("Roku", (
        "08059E", "B0A737", "C8FC18", "D03478", "DC3A5E",
    )),
)


def _build_table() -> Dict[str, str]:
    table: Dict[str, str] = {}
    for vendor, prefixes in _VENDOR_GROUPS:
        for prefix in prefixes:
            table[prefix] = vendor
    return table


OUI_TABLE: Dict[str, str] = _build_table()


def normalize_oui(mac: str) -> Optional[str]:
    """
    Extract the six-hex-digit OUI from a MAC address.

    Separated forms have each of their first three groups left-padded to two
    digits, so "0:E0:4C" and "00:E0:4C" give the same prefix. Unseparated
    forms contribute their first six hex digits.

    Args:
        mac: MAC address in any common notation

    Returns:
        Uppercase OUI, or None when fewer than six digits are available
    """
    parts = _SEPARATORS.split(mac.strip())
    if len(parts) >= 3:
        normalized = "".join(part.upper().rjust(2, "0") for part in parts[:3])[:6]
    else:
        normalized = "".join(c for c in mac if c in "0123456789abcdefABCDEF")[:6].upper()

    if len(normalized) < 6:
        return None
    return normalized


def is_locally_administered(mac: str) -> bool:
    """True when the MAC has the locally administered bit set (randomized)."""
    oui = normalize_oui(mac)
    return oui is not None and oui[1] in _LOCAL_ADMIN_NIBBLES


def lookup_vendor(mac: str) -> Optional[str]:
    """
    Look up the vendor for a MAC address.

    Args:
        mac: MAC address in any common notation

    Returns:
        Vendor name, "Private/Randomized" for unlisted locally administered
        addresses, or None
    """
    oui = normalize_oui(mac)
    if oui is None:
        return None

    vendor = OUI_TABLE.get(oui)
    if vendor is not None:
        return vendor

    if oui[1] in _LOCAL_ADMIN_NIBBLES:
        return RANDOMIZED_VENDOR
    return None
