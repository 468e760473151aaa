"""
Router service - the operations the dashboard API calls into

Every method returns a dict with a 'success' flag and never raises, so one
unreachable router cannot take down request handling for the others.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from connections import ConnectionRegistry, ConnectParams
from database.models import RouterRecord
from discovery import MNDPDiscovery
from router_client import RouterError, RouterErrorKind, RouterSession

logger = logging.getLogger(__name__)


class RouterService:
    """Dashboard-facing operations over the registry, discovery and router store"""

    def __init__(self, registry: ConnectionRegistry, discovery: MNDPDiscovery, db=None,
                 config: Optional[Dict] = None):
        self.registry = registry
        self.discovery = discovery
        self.db = db  # None = in-memory only
        self.config = config or {}
        routers_config = self.config.get('routers', {})
        self.default_port = routers_config.get('default_port', 8728)

    # ================== RESULT HELPERS ==================

    @staticmethod
    def _failure(error: RouterError, **extra) -> Dict[str, Any]:
        return {"success": False, "message": error.message, "errorMessage": error.message,
                "error": error.kind.value, **extra}

    @staticmethod
    def _unexpected(action: str, e: Exception, **extra) -> Dict[str, Any]:
        logger.error(f"Unexpected error while trying to {action}: {e}")
        message = f"Failed to {action}: {e}"
        return {"success": False, "message": message, "errorMessage": message,
                "error": RouterErrorKind.UNKNOWN.value, **extra}

    async def _with_session(self, session_id: str, action: str,
                            operation: Callable[[RouterSession], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        try:
            session = await self.registry.require(session_id)
            return await operation(session)
        except RouterError as e:
            logger.warning(f"Failed to {action} on {session_id}: {e.message}")
            return self._failure(e)
        except Exception as e:
            return self._unexpected(action, e)

    # ================== CONNECTION LIFECYCLE ==================

    async def test_connection(self, host: str, username: str, password: str,
                              port: Optional[int] = None) -> Dict[str, Any]:
        """Connect, read the identity, disconnect"""
        port = port or self.default_port
        try:
            session = await self.registry.connector(
                host, username, password,
                port=port,
                timeout=self.registry.connect_timeout,
                command_timeout=self.registry.command_timeout,
                **self.registry.transport_options
            )
        except RouterError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected("test connection", e)

        try:
            identity = await session.fetch_identity()
        except RouterError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected("test connection", e)
        finally:
            try:
                await session.close()
            except Exception as e:
                logger.debug(f"Closing test connection to {host}: {e}")

        return {"success": True, "message": "Connection successful", "identity": identity}

    async def connect(self, host: str, username: str, password: str, port: Optional[int] = None,
                      name: Optional[str] = None, session_id: Optional[str] = None) -> Dict[str, Any]:
        params = ConnectParams(
            host=host,
            username=username,
            password=password,
            port=port or self.default_port,
            name=name,
            session_id=session_id
        )
        try:
            session = await self.registry.connect(params)
        except RouterError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected("connect to router", e)

        await self._save_router(session, password)
        return {"success": True, "session": session.to_dict()}

    async def disconnect(self, session_id: str) -> Dict[str, Any]:
        try:
            await self.registry.disconnect(session_id)
        except RouterError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected("disconnect router", e)

        if self.db:
            await self.db.mark_router_inactive(session_id)
        return {"success": True, "message": "Router disconnected successfully"}

    async def list_sessions(self) -> Dict[str, Any]:
        """Connected sessions, plus saved-but-disconnected routers when a store is present"""
        try:
            sessions = self.registry.list()
            if self.db:
                connected = {item['id'] for item in sessions}
                for record in await self.db.get_routers():
                    if record.router_id not in connected:
                        saved = record.to_public_dict()
                        saved['isActive'] = False
                        sessions.append(saved)
            return {"success": True, "sessions": sessions}
        except Exception as e:
            return self._unexpected("list routers", e, sessions=[])

    async def get_router(self, session_id: str) -> Dict[str, Any]:
        """Fresh resource stats and active hotspot user count for one router"""
        try:
            session = await self.registry.require(session_id, check_health=True)
            await session.fetch_resource_stats()
            try:
                active = await session.list_active_sessions()
            except RouterError as e:
                if e.kind == RouterErrorKind.DISCONNECTED:
                    raise
                active = []
            router = session.to_dict()
            router['activeUsers'] = len(active)
            return {"success": True, "session": router}
        except RouterError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected("get router", e)

    async def reconnect_saved_routers(self) -> int:
        """Re-open sessions for routers marked active in the store"""
        if not self.db:
            return 0

        records = await self.db.get_active_routers()
        if not records:
            return 0

        logger.info(f"Reconnecting {len(records)} saved router(s)...")

        async def reconnect(record: RouterRecord) -> bool:
            result = await self.connect(record.host, record.username, record.password,
                                        port=record.port, name=record.name,
                                        session_id=record.router_id)
            if not result['success']:
                logger.warning(f"[ERROR] Could not reconnect {record.name} ({record.host}): {result['message']}")
                await self.db.mark_router_inactive(record.router_id)
            return result['success']

        results = await asyncio.gather(*(reconnect(r) for r in records))
        connected = sum(1 for ok in results if ok)
        logger.info(f"[PASS] Reconnected {connected}/{len(records)} saved router(s)")
        return connected

    async def _save_router(self, session: RouterSession, password: str):
        if not self.db:
            return
        record = RouterRecord(
            router_id=session.session_id,
            name=session.name or session.identity or 'Unknown Router',
            host=session.host,
            username=session.username,
            password=password,
            port=session.port,
            identity=session.identity,
            model=session.model,
            version=session.version,
            last_connected=datetime.now(timezone.utc),
            is_active=True
        )
        if not await self.db.upsert_router(record):
            logger.warning(f"Router {session.session_id} connected but could not be saved")

    # ================== DISCOVERY ==================

    async def discover(self) -> Dict[str, Any]:
        try:
            result = await self.discovery.discover()
        except Exception as e:
            return self._unexpected("discover routers", e, devices=[], count=0)

        devices = [device.to_dict() for device in result.devices]
        return {
            "success": True,
            "message": f"Found {len(devices)} MikroTik router(s)",
            "devices": devices,
            "count": len(devices),
        }

    def neighbors(self) -> Dict[str, Any]:
        """Devices heard by scans or the passive listener within the neighbor TTL"""
        devices = [device.to_dict() for device in self.discovery.recent_devices()]
        return {"success": True, "devices": devices, "count": len(devices)}

    # ================== HOTSPOT ==================

    async def get_active_sessions(self, session_id: str) -> Dict[str, Any]:
        async def operation(session):
            return {"success": True, "sessions": await session.list_active_sessions()}
        return await self._with_session(session_id, "list active sessions", operation)

    async def get_hotspot_users(self, session_id: str) -> Dict[str, Any]:
        async def operation(session):
            return {"success": True, "users": await session.list_hotspot_users()}
        return await self._with_session(session_id, "list hotspot users", operation)

    async def get_hotspot_profiles(self, session_id: str) -> Dict[str, Any]:
        async def operation(session):
            return {"success": True, "profiles": await session.list_hotspot_profiles()}
        return await self._with_session(session_id, "list hotspot profiles", operation)

    async def create_hotspot_user(self, session_id: str, name: str, password: str,
                                  profile: Optional[str] = None, comment: Optional[str] = None) -> Dict[str, Any]:
        async def operation(session):
            await session.create_hotspot_user(name, password, profile=profile, comment=comment)
            return {"success": True, "message": "User created successfully"}
        return await self._with_session(session_id, "create hotspot user", operation)

    async def delete_hotspot_user(self, session_id: str, user_id: str) -> Dict[str, Any]:
        async def operation(session):
            await session.delete_hotspot_user(user_id)
            return {"success": True, "message": "User deleted successfully"}
        return await self._with_session(session_id, "delete hotspot user", operation)

    async def disconnect_active_session(self, session_id: str, user_id: str) -> Dict[str, Any]:
        async def operation(session):
            await session.disconnect_active_session(user_id)
            return {"success": True, "message": "User disconnected successfully"}
        return await self._with_session(session_id, "disconnect hotspot session", operation)

    # ================== HEALTH ==================

    def health(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": "Server is running",
            "connectedRouters": len(self.registry),
            "database": "connected" if self.db else "in-memory",
        }
