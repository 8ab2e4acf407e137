"""
lan_recon

A Python module for local network reconnaissance: discovers devices from the
OS ARP cache, scans them for open TCP ports, identifies device types and
flags AI agents and developer tools listening on the network.
"""

__version__ = "1.0.0"
__author__ = "LAN Recon Team"
