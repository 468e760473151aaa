"""
Database models and data structures
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime

@dataclass
class RouterRecord:
    """Database record for a saved router configuration"""
    router_id: str
    name: str
    host: str
    username: str
    password: str = field(repr=False)
    port: int = 8728
    identity: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    last_connected: Optional[datetime] = None
    is_active: bool = False

    def to_public_dict(self) -> Dict[str, Any]:
        """Stored router without its credentials"""
        return {
            "id": self.router_id,
            "name": self.name,
            "host": self.host,
            "username": self.username,
            "port": self.port,
            "identity": self.identity,
            "version": self.version,
            "model": self.model,
            "lastConnected": self.last_connected.isoformat() if self.last_connected else None,
            "isActive": self.is_active,
        }
