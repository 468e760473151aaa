"""
Discovery data structures and models
"""

from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field

@dataclass
class DiscoveredDevice:
    """Represents a RouterOS device announced via MNDP"""
    mac_address: Optional[str] = None
    identity: Optional[str] = None
    version: Optional[str] = None
    platform: Optional[str] = None
    board_name: Optional[str] = None
    software_id: Optional[str] = None
    uptime_seconds: Optional[int] = None
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None
    interface_name: Optional[str] = None
    unpack: Optional[str] = None
    source_address: Optional[str] = None  # UDP sender, wins over ipv4_address
    discovered_at: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in vars(self).values())

    def is_valid(self) -> bool:
        """Devices without both a MAC and an identity are echoes or noise"""
        return bool(self.mac_address) and bool(self.identity)

    @property
    def host(self) -> Optional[str]:
        return self.source_address or self.ipv4_address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "host": self.host,
            "ipAddress": self.host,
            "macAddress": self.mac_address,
            "version": self.version,
            "platform": self.platform,
            "board": self.board_name,
            "uptime": self.uptime_seconds,
            "softwareId": self.software_id,
            "interfaceName": self.interface_name,
            "ipv6Address": self.ipv6_address,
            "discoveredAt": self.discovered_at,
        }

@dataclass
class DiscoveryResult:
    """Results from an MNDP scan"""
    devices: List[DiscoveredDevice]
    method: str
    duration_seconds: float
    packets_received: int
    targets: List[str] = field(default_factory=list)
