"""
Discovery module for Roku device discovery
"""

from .manager import DeviceDiscovery
from .models import DeviceCapabilities, DeviceRecord, DiscoveryResult, DiscoveryStatus, ProbeResult
from .network_discovery import ConnectionProber

__all__ = ['DeviceDiscovery', 'DeviceCapabilities', 'DeviceRecord', 'DiscoveryResult',
           'DiscoveryStatus', 'ProbeResult', 'ConnectionProber']
