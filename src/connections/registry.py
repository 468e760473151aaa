"""
Connection registry: the process-wide table of live router sessions
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from router_client import RouterError, RouterErrorKind, RouterSession, DEFAULT_API_PORT

logger = logging.getLogger(__name__)

@dataclass
class ConnectParams:
    """Everything needed to open (or re-open) a router session"""
    host: str
    username: str
    password: str
    port: int = DEFAULT_API_PORT
    name: Optional[str] = None
    session_id: Optional[str] = None

    def __repr__(self):
        return f"ConnectParams(host={self.host!r}, port={self.port}, username={self.username!r}, session_id={self.session_id!r})"


Connector = Callable[..., Awaitable[RouterSession]]


class ConnectionRegistry:
    """
    Owns every RouterSession in the process, keyed by session id.

    Mutations take a per-key lock, so a reconnect and a disconnect of the
    same key never interleave while unrelated keys proceed independently.
    """

    def __init__(self, connector: Optional[Connector] = None, connect_timeout: float = 10.0,
                 command_timeout: float = 10.0, transport_options: Optional[Dict[str, Any]] = None):
        self.connector = connector or RouterSession.connect
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.transport_options = transport_options or {}
        self._sessions: Dict[str, RouterSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _key_lock(self, session_id: str):
        """Hold the lock for session_id; it is dropped once no task holds or awaits it"""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[session_id] - 1
            if remaining:
                self._lock_users[session_id] = remaining
            else:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session_id: str):
        return session_id in self._sessions

    async def connect(self, params: ConnectParams) -> RouterSession:
        """Open a session under params.session_id (or a new id), replacing any existing one"""
        session_id = params.session_id or uuid.uuid4().hex

        async with self._key_lock(session_id):
            previous = self._sessions.pop(session_id, None)
            if previous is not None:
                logger.info(f"Reconnecting {session_id}: closing previous session to {previous.host}")
                await self._close_quietly(previous)

            session = await self.connector(
                params.host,
                params.username,
                params.password,
                port=params.port or DEFAULT_API_PORT,
                timeout=self.connect_timeout,
                session_id=session_id,
                name=params.name,
                command_timeout=self.command_timeout,
                **self.transport_options
            )

            try:
                await session.refresh()
            except RouterError as e:
                logger.warning(f"Router {params.host} connected but initial refresh failed: {e.message}")
                await self._close_quietly(session)
                raise

            self._sessions[session_id] = session
            logger.info(f"[REGISTRY] {session_id} -> {session.identity} ({session.host}:{session.port}), "
                        f"{len(self._sessions)} session(s) active")
            return session

    async def get(self, session_id: str, check_health: bool = False) -> Optional[RouterSession]:
        """Look up a session; with check_health, dead sessions are evicted and None returned"""
        session = self._sessions.get(session_id)
        if session is None or not check_health:
            return session

        if session.alive:
            try:
                await session.ping()
                return session
            except RouterError as e:
                if e.kind != RouterErrorKind.DISCONNECTED:
                    # Slow but not dead; let the caller's own request decide
                    return session

        await self._evict(session_id, session, "failed health check")
        return None

    async def require(self, session_id: str, check_health: bool = False) -> RouterSession:
        session = await self.get(session_id, check_health=check_health)
        if session is None:
            raise RouterError(RouterErrorKind.NOT_FOUND, "Router not found")
        return session

    def list(self) -> List[Dict[str, Any]]:
        return [session.to_dict() for session in list(self._sessions.values())]

    def sessions(self) -> List[RouterSession]:
        return list(self._sessions.values())

    async def disconnect(self, session_id: str):
        """Close and forget a session; the entry is removed even if close fails"""
        async with self._key_lock(session_id):
            session = self._sessions.pop(session_id, None)
            if session is None:
                raise RouterError(RouterErrorKind.NOT_FOUND, "Router not found")
            await self._close_quietly(session)
        logger.info(f"[REGISTRY] {session_id} removed, {len(self._sessions)} session(s) active")

    async def check_health(self, max_missed: int = 3) -> List[str]:
        """
        Ping every session concurrently and evict the dead ones.

        DISCONNECTED evicts immediately; other failures only after max_missed
        consecutive misses. Returns the evicted session ids.
        """
        snapshot = list(self._sessions.items())
        if not snapshot:
            return []

        async def check_one(session_id: str, session: RouterSession) -> Optional[str]:
            if session.alive:
                try:
                    await session.ping()
                    return None
                except RouterError as e:
                    if e.kind != RouterErrorKind.DISCONNECTED and session.consecutive_failures < max_missed:
                        logger.warning(f"Health check missed for {session.host} "
                                       f"({session.consecutive_failures}/{max_missed}): {e.message}")
                        return None
            if await self._evict(session_id, session, "failed health check"):
                return session_id
            return None

        results = await asyncio.gather(*(check_one(sid, s) for sid, s in snapshot), return_exceptions=True)
        evicted = []
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Health check error: {result}")
            elif result:
                evicted.append(result)
        return evicted

    async def close_all(self):
        for session_id in list(self._sessions.keys()):
            try:
                await self.disconnect(session_id)
            except RouterError:
                continue

    async def _evict(self, session_id: str, session: RouterSession, reason: str) -> bool:
        """Remove session_id only if it still maps to this exact session"""
        async with self._key_lock(session_id):
            if self._sessions.get(session_id) is not session:
                return False
            del self._sessions[session_id]
            await self._close_quietly(session)
        logger.warning(f"[REGISTRY] Evicted {session_id} ({session.host}): {reason}")
        return True

    async def _close_quietly(self, session: RouterSession):
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing session to {session.host}:{session.port}: {e}")
