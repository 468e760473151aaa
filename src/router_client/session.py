"""
Router session: one authenticated RouterOS connection with a normalized command surface
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .errors import RouterError, RouterErrorKind, classify_connect_error, classify_command_error
from .models import (
    ResourceStats, normalize_row, normalize_rows, DEFAULT_API_PORT,
    IDENTITY_PATH, RESOURCE_PATH, ROUTERBOARD_PATH,
    HOTSPOT_ACTIVE_PATH, HOTSPOT_USER_PATH, HOTSPOT_PROFILE_PATH,
    ACTIVE_SESSION_FIELDS, HOTSPOT_USER_FIELDS, HOTSPOT_PROFILE_FIELDS, ROUTERBOARD_FIELDS,
)
from .transport import RouterOSTransport

logger = logging.getLogger(__name__)


class RouterSession:
    """
    Owns one live transport to one router.

    Remote calls are serialized per session and run in worker threads with a
    timeout. close() is a barrier: once it starts, nothing else is
    dispatched on the transport. A command timeout leaves the session
    stalled: later calls raise DISCONNECTED until it is replaced.
    """

    def __init__(self, transport, session_id: str, host: str, username: str, password: str,
                 port: int = DEFAULT_API_PORT, name: Optional[str] = None,
                 command_timeout: float = 10.0):
        self.session_id = session_id
        self.name = name
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self._transport = transport
        self.command_timeout = command_timeout

        self.identity: Optional[str] = None
        self.version: Optional[str] = None
        self.model: Optional[str] = None
        self.connected_at = datetime.now(timezone.utc)
        self.last_known_stats: Optional[ResourceStats] = None

        self.alive = True
        self.consecutive_failures = 0
        self._closed = False
        self._stalled = False
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, host: str, username: str, password: str, port: int = DEFAULT_API_PORT,
                      timeout: float = 10.0, session_id: Optional[str] = None,
                      name: Optional[str] = None, command_timeout: Optional[float] = None,
                      transport_factory: Callable[..., Any] = RouterOSTransport,
                      **transport_options) -> 'RouterSession':
        """
        Open and authenticate a transport.

        Raises RouterError classified as TIMEOUT, CONNECTION_REFUSED,
        AUTHENTICATION_FAILED or UNKNOWN.
        """
        port = port or DEFAULT_API_PORT
        transport = transport_factory(host, username, password, port=port, timeout=timeout,
                                      **transport_options)
        try:
            await asyncio.wait_for(asyncio.to_thread(transport.open), timeout)
        except Exception as e:
            error = classify_connect_error(e, host, port)
            logger.warning(f"Connection to {host}:{port} failed ({error.kind.value}): {e}")
            try:
                await asyncio.to_thread(transport.close)
            except Exception as close_error:
                logger.debug(f"Closing failed transport to {host}:{port}: {close_error}")
            raise error from e

        logger.info(f"[CONNECT] Connected to router {host}:{port} as {username}")
        return cls(
            transport,
            session_id=session_id or uuid.uuid4().hex,
            host=host,
            username=username,
            password=password,
            port=port,
            name=name,
            command_timeout=command_timeout if command_timeout is not None else timeout
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stalled(self) -> bool:
        return self._stalled

    # ================== TRANSPORT ACCESS ==================

    def _check_usable(self):
        if self._closed or self._transport is None:
            raise RouterError(RouterErrorKind.DISCONNECTED, f"Session {self.session_id} is closed")
        if self._stalled:
            raise RouterError(
                RouterErrorKind.DISCONNECTED,
                f"Session {self.session_id} is unusable after a command timeout, reconnect required"
            )

    async def _call(self, method: str, *args, **kwargs):
        self._check_usable()

        async with self._lock:
            # close() or a timeout may have happened while we waited
            self._check_usable()
            func = getattr(self._transport, method)
            try:
                return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), self.command_timeout)
            except asyncio.TimeoutError:
                # worker thread still owns the socket; its late reply would answer the next command
                self._stalled = True
                self.alive = False
                logger.warning(f"Router {self.host}:{self.port} timed out on {method}, session marked unusable")
                raise RouterError(
                    RouterErrorKind.TIMEOUT,
                    f"Router {self.host}:{self.port} did not respond within {self.command_timeout}s"
                )
            except Exception as e:
                error = classify_command_error(e)
                if error.kind == RouterErrorKind.DISCONNECTED:
                    self.alive = False
                    logger.warning(f"Router {self.host}:{self.port} connection lost: {e}")
                raise error from e

    # ================== READ-ONLY QUERIES ==================

    async def fetch_identity(self) -> str:
        rows = await self._call('list', IDENTITY_PATH)
        return rows[0].get('name', 'Unknown') if rows else 'Unknown'

    async def fetch_resource_stats(self) -> ResourceStats:
        rows = await self._call('list', RESOURCE_PATH)
        stats = ResourceStats.from_row(rows[0] if rows else {})
        self.last_known_stats = stats
        return stats

    async def fetch_board_info(self) -> Dict[str, Any]:
        """Best effort: devices without a routerboard subsystem return {}"""
        try:
            rows = await self._call('list', ROUTERBOARD_PATH)
        except RouterError as e:
            if e.kind == RouterErrorKind.DISCONNECTED or self._stalled:
                raise
            logger.debug(f"Routerboard info unavailable on {self.host}: {e.message}")
            return {}
        if not rows:
            return {}
        return normalize_row(rows[0], ROUTERBOARD_FIELDS)

    async def refresh(self):
        """Reload identity, resource stats and board info"""
        self.identity = await self.fetch_identity()
        stats = await self.fetch_resource_stats()
        board = await self.fetch_board_info()
        self.version = stats.version
        self.model = board.get('model') or stats.board_name or 'Unknown'
        if not self.name:
            self.name = self.identity or 'Unknown Router'

    async def ping(self) -> bool:
        """Liveness check (identity query); raises RouterError on failure"""
        try:
            await self.fetch_identity()
        except RouterError:
            self.consecutive_failures += 1
            raise
        self.consecutive_failures = 0
        self.alive = True
        return True

    # ================== HOTSPOT COLLECTIONS ==================

    async def list_active_sessions(self) -> List[Dict[str, Any]]:
        rows = await self._call('list', HOTSPOT_ACTIVE_PATH)
        return normalize_rows(rows, ACTIVE_SESSION_FIELDS)

    async def list_hotspot_users(self) -> List[Dict[str, Any]]:
        rows = await self._call('list', HOTSPOT_USER_PATH)
        return normalize_rows(rows, HOTSPOT_USER_FIELDS)

    async def list_hotspot_profiles(self) -> List[Dict[str, Any]]:
        rows = await self._call('list', HOTSPOT_PROFILE_PATH)
        return normalize_rows(rows, HOTSPOT_PROFILE_FIELDS)

    # ================== MUTATIONS ==================

    async def create_hotspot_user(self, name: str, password: str, profile: Optional[str] = None,
                                  comment: Optional[str] = None):
        params = {'name': name, 'password': password}
        if profile:
            params['profile'] = profile
        if comment:
            params['comment'] = comment
        await self._call('add', HOTSPOT_USER_PATH, **params)
        logger.info(f"Created hotspot user {name} on {self.host}")

    async def delete_hotspot_user(self, user_id: str):
        await self._call('remove', HOTSPOT_USER_PATH, user_id)
        logger.info(f"Deleted hotspot user {user_id} on {self.host}")

    async def disconnect_active_session(self, active_id: str):
        await self._call('remove', HOTSPOT_ACTIVE_PATH, active_id)
        logger.info(f"Disconnected hotspot session {active_id} on {self.host}")

    # ================== LIFECYCLE ==================

    async def close(self):
        """Release the transport. Only the first call can raise."""
        self._closed = True
        self.alive = False
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await asyncio.wait_for(asyncio.to_thread(transport.close), self.command_timeout)
        except Exception as e:
            raise classify_command_error(e) from e
        finally:
            logger.info(f"[DISCONNECT] Closed session to {self.host}:{self.port}")

    def to_dict(self) -> Dict[str, Any]:
        """External view; never includes the password or transport"""
        stats = self.last_known_stats or ResourceStats()
        return {
            "id": self.session_id,
            "name": self.name,
            "host": self.host,
            "username": self.username,
            "port": self.port,
            "identity": self.identity,
            "version": self.version,
            "model": self.model,
            "cpuLoad": stats.cpu_load,
            "freeMemory": stats.free_memory,
            "totalMemory": stats.total_memory,
            "uptime": stats.uptime,
            "connectedAt": self.connected_at.isoformat(),
            "isActive": not self._closed,
        }

    def __repr__(self):
        return f"RouterSession(id={self.session_id!r}, host={self.host!r}, port={self.port}, user={self.username!r})"
