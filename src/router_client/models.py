"""
Router data structures and RouterOS field normalization
"""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass

# RouterOS API resource paths
IDENTITY_PATH = "/system/identity"
RESOURCE_PATH = "/system/resource"
ROUTERBOARD_PATH = "/system/routerboard"
HOTSPOT_ACTIVE_PATH = "/ip/hotspot/active"
HOTSPOT_USER_PATH = "/ip/hotspot/user"
HOTSPOT_PROFILE_PATH = "/ip/hotspot/user/profile"

DEFAULT_API_PORT = 8728


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "yes")


@dataclass
class ResourceStats:
    """Snapshot of /system/resource"""
    cpu_load: int = 0
    free_memory: int = 0
    total_memory: int = 0
    uptime: str = "Unknown"
    version: str = "Unknown"
    board_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ResourceStats':
        return cls(
            cpu_load=_to_int(row.get('cpu-load')),
            free_memory=_to_int(row.get('free-memory')),
            total_memory=_to_int(row.get('total-memory')),
            uptime=row.get('uptime') or "Unknown",
            version=row.get('version') or "Unknown",
            board_name=row.get('board-name')
        )


# Provider field name -> stable field name. '.id' and 'id' both appear
# depending on how the API library decodes the row.
ACTIVE_SESSION_FIELDS = {
    '.id': 'id',
    'id': 'id',
    'user': 'user',
    'address': 'address',
    'mac-address': 'mac',
    'login-by': 'loginBy',
    'uptime': 'uptime',
    'bytes-in': 'bytesIn',
    'bytes-out': 'bytesOut',
}

HOTSPOT_USER_FIELDS = {
    '.id': 'id',
    'id': 'id',
    'name': 'name',
    'password': 'password',
    'profile': 'profile',
    'uptime': 'uptime',
    'bytes-in': 'bytesIn',
    'bytes-out': 'bytesOut',
    'disabled': 'disabled',
}

HOTSPOT_PROFILE_FIELDS = {
    '.id': 'id',
    'id': 'id',
    'name': 'name',
    'shared-users': 'sharedUsers',
    'rate-limit': 'rateLimit',
    'session-timeout': 'sessionTimeout',
    'idle-timeout': 'idleTimeout',
    'keepalive-timeout': 'keepaliveTimeout',
}

ROUTERBOARD_FIELDS = {
    'model': 'model',
    'serial-number': 'serialNumber',
    'firmware-type': 'firmwareType',
    'current-firmware': 'currentFirmware',
    'routerboard': 'routerboard',
}

FIELD_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    'bytesIn': _to_int,
    'bytesOut': _to_int,
    'disabled': _to_bool,
    'routerboard': _to_bool,
}


def normalize_row(row: Dict[str, Any], field_map: Dict[str, str]) -> Dict[str, Any]:
    """Keep only mapped fields, renamed and converted; missing fields become None"""
    result = {stable: None for stable in field_map.values()}
    for provider_key, stable_key in field_map.items():
        if provider_key not in row or row[provider_key] is None:
            continue
        value = row[provider_key]
        converter = FIELD_CONVERTERS.get(stable_key)
        result[stable_key] = converter(value) if converter else value
    for stable_key, converter in FIELD_CONVERTERS.items():
        if stable_key in result and result[stable_key] is None:
            result[stable_key] = converter(None)
    return result


def normalize_rows(rows: List[Dict[str, Any]], field_map: Dict[str, str]) -> List[Dict[str, Any]]:
    return [normalize_row(row, field_map) for row in rows]
