"""
Discovery module for RouterOS neighbor discovery (MNDP)
"""

from .manager import MNDPDiscovery, MNDPListener
from .models import DiscoveredDevice, DiscoveryResult
from .mndp_codec import MNDPParseError, parse_mndp_packet, create_mndp_request

__all__ = ['MNDPDiscovery', 'MNDPListener', 'DiscoveredDevice', 'DiscoveryResult',
           'MNDPParseError', 'parse_mndp_packet', 'create_mndp_request']
