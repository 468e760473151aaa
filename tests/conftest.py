"""pytest configuration and shared fakes for hotspot server tests."""

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from connections import ConnectionRegistry
from database.models import RouterRecord
from discovery.models import DiscoveredDevice, DiscoveryResult
from router_client import RouterSession
from router_client.models import (
    IDENTITY_PATH, RESOURCE_PATH, ROUTERBOARD_PATH,
    HOTSPOT_ACTIVE_PATH, HOTSPOT_USER_PATH, HOTSPOT_PROFILE_PATH,
)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def default_tables() -> Dict[str, List[Dict[str, Any]]]:
    return {
        IDENTITY_PATH: [{"name": "HQ-Router"}],
        RESOURCE_PATH: [{
            "cpu-load": "7",
            "free-memory": "104857600",
            "total-memory": "268435456",
            "uptime": "1d2h3m",
            "version": "7.12.1 (stable)",
            "board-name": "hAP ac2",
        }],
        ROUTERBOARD_PATH: [{
            "routerboard": "true",
            "model": "RBD52G-5HacD2HnD",
            "serial-number": "ABC123",
        }],
        HOTSPOT_ACTIVE_PATH: [{
            "id": "*1",
            "user": "alice",
            "address": "10.5.50.2",
            "mac-address": "AA:BB:CC:00:11:22",
            "login-by": "http-chap",
            "uptime": "5m",
            "bytes-in": "1024",
            "bytes-out": "2048",
            "idle-time": "0s",
        }],
        HOTSPOT_USER_PATH: [
            {
                "id": "*A",
                "name": "alice",
                "password": "voucher-1",
                "profile": "1-hour",
                "uptime": "1h",
                "bytes-in": "10",
                "bytes-out": "20",
                "disabled": "false",
            },
            {
                ".id": "*B",
                "name": "bob",
                "password": "voucher-2",
                "profile": "default",
                "disabled": "true",
            },
        ],
        HOTSPOT_PROFILE_PATH: [{
            "id": "*0",
            "name": "1-hour",
            "shared-users": "1",
            "rate-limit": "2M/2M",
            "session-timeout": "1h",
            "idle-timeout": "none",
            "keepalive-timeout": "2m",
        }],
    }


class FakeTransport:
    """In-memory stand-in for RouterOSTransport"""

    def __init__(self, host, username, password, port=8728, timeout=10.0, **options):
        self.host = host
        self.username = username
        self.password = password
        self.port = port
        self.timeout = timeout
        self.options = options
        self.tables = default_tables()
        self.opened = False
        self.close_calls = 0
        self.open_error: Optional[BaseException] = None
        self.open_delay = 0.0
        self.close_error: Optional[BaseException] = None
        self.command_error: Optional[BaseException] = None
        self.command_delay = 0.0
        self.failing_paths: Dict[str, BaseException] = {}
        self.added = []
        self.removed = []
        self.calls = []
        self.active_calls = 0
        self.max_active_calls = 0
        self._counter_lock = threading.Lock()

    def open(self):
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.open_error:
            raise self.open_error
        self.opened = True

    def _check(self, method, path):
        with self._counter_lock:
            self.calls.append((method, path))
            self.active_calls += 1
            self.max_active_calls = max(self.max_active_calls, self.active_calls)
        try:
            if self.command_delay:
                time.sleep(self.command_delay)
            if self.command_error:
                raise self.command_error
            if path in self.failing_paths:
                raise self.failing_paths[path]
        finally:
            with self._counter_lock:
                self.active_calls -= 1

    def list(self, path):
        self._check("list", path)
        return [dict(row) for row in self.tables.get(path, [])]

    def add(self, path, **params):
        self._check("add", path)
        self.added.append((path, params))

    def remove(self, path, item_id):
        self._check("remove", path)
        self.removed.append((path, item_id))

    def close(self):
        self.close_calls += 1
        if self.close_error:
            raise self.close_error


class FakeRouterNetwork:
    """Hands out FakeTransports and records every one of them"""

    def __init__(self):
        self.transports: List[FakeTransport] = []
        self.configure: Optional[Callable[[FakeTransport], None]] = None

    def factory(self, host, username, password, **kwargs) -> FakeTransport:
        transport = FakeTransport(host, username, password, **kwargs)
        if self.configure:
            self.configure(transport)
        self.transports.append(transport)
        return transport

    async def connect(self, host, username, password, **kwargs) -> RouterSession:
        return await RouterSession.connect(host, username, password,
                                           transport_factory=self.factory, **kwargs)

    def for_host(self, host) -> List[FakeTransport]:
        return [t for t in self.transports if t.host == host]


class FakeDiscovery:
    def __init__(self, devices=None, error=None):
        self.devices = devices or []
        self.error = error
        self.known_devices = {d.mac_address: d for d in self.devices}

    async def discover(self, timeout=None):
        if self.error:
            raise self.error
        return DiscoveryResult(list(self.devices), "mndp", 0.01, len(self.devices), ["255.255.255.255"])

    def recent_devices(self):
        return list(self.known_devices.values())


class FakeRouterStore:
    """Mimics DatabaseManager's router methods"""

    def __init__(self, records=None):
        self.records = {r.router_id: r for r in (records or [])}
        self.upserted = []
        self.inactive = []

    async def upsert_router(self, record):
        self.upserted.append(record)
        self.records[record.router_id] = record
        return True

    async def get_routers(self):
        return list(self.records.values())

    async def get_active_routers(self):
        return [r for r in self.records.values() if r.is_active]

    async def mark_router_inactive(self, router_id):
        self.inactive.append(router_id)
        if router_id in self.records:
            self.records[router_id].is_active = False


def saved_router(router_id="saved-1", is_active=False, password="stored-secret") -> RouterRecord:
    return RouterRecord(
        router_id=router_id,
        name="Branch",
        host="10.10.0.1",
        username="admin",
        password=password,
        port=8728,
        identity="Branch-GW",
        last_connected=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
        is_active=is_active,
    )


def sample_device(mac="4C:5E:0C:11:22:33", identity="Branch-AP", host="192.168.88.1") -> DiscoveredDevice:
    return DiscoveredDevice(
        mac_address=mac,
        identity=identity,
        version="7.12.1",
        platform="MikroTik",
        board_name="hAP ac2",
        source_address=host,
        discovered_at="2026-10-19T10:00:00+00:00",
    )


@pytest.fixture
def network():
    return FakeRouterNetwork()


@pytest.fixture
def registry(network):
    return ConnectionRegistry(connector=network.connect, connect_timeout=2.0, command_timeout=2.0)
