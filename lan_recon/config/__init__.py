"""
Configuration module for lan_recon.
Provides loading and validation of the discovery and port scan settings.
"""

from .config_loader import ConfigLoader, DiscoveryConfig, PortScanConfig, ScanConfig

__all__ = ['ConfigLoader', 'DiscoveryConfig', 'PortScanConfig', 'ScanConfig']
