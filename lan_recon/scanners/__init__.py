"""
Scanner modules for lan_recon.

This package contains the base scanner interface, the ARP cache based
device discoverer and the asynchronous TCP port scanner.
"""

from .base_scanner import BaseScanner
from .arp_scanner import ARPScanner
from .port_scanner import PortScanner

__all__ = [
    'BaseScanner',
    'ARPScanner',
    'PortScanner'
]
