"""Tests for RouterSession and error classification"""

import asyncio
import socket

import pytest
from routeros_api import exceptions as ros_exceptions

from router_client import RouterError, RouterErrorKind, RouterSession
from router_client.errors import classify_connect_error, classify_command_error, is_disconnect
from router_client.models import (
    HOTSPOT_ACTIVE_PATH, HOTSPOT_USER_PATH, ROUTERBOARD_PATH, ResourceStats,
    normalize_row, HOTSPOT_USER_FIELDS,
)


async def open_session(network, **kwargs):
    params = dict(host="192.168.88.1", username="admin", password="s3cret")
    params.update(kwargs)
    host = params.pop("host")
    username = params.pop("username")
    password = params.pop("password")
    return await network.connect(host, username, password, **params)


class TestErrorClassification:
    def test_timeout_message_names_port(self):
        error = classify_connect_error(socket.timeout("timed out"), "10.0.0.1", 8730)
        assert error.kind == RouterErrorKind.TIMEOUT
        assert "8730" in error.message

    def test_wrapped_timeout(self):
        wrapped = ros_exceptions.RouterOsApiConnectionError(socket.timeout("timed out"))
        assert classify_connect_error(wrapped, "10.0.0.1", 8728).kind == RouterErrorKind.TIMEOUT

    def test_refused(self):
        error = classify_connect_error(ConnectionRefusedError(111, "Connection refused"), "10.0.0.1", 8728)
        assert error.kind == RouterErrorKind.CONNECTION_REFUSED
        assert "10.0.0.1:8728" in error.message

    def test_authentication(self):
        error = classify_connect_error(Exception("invalid user name or password (6)"), "10.0.0.1", 8728)
        assert error.kind == RouterErrorKind.AUTHENTICATION_FAILED

    def test_bytes_messages_are_decoded(self):
        error = classify_connect_error(Exception(b"cannot log in"), "10.0.0.1", 8728)
        assert error.kind == RouterErrorKind.AUTHENTICATION_FAILED

    def test_unknown_keeps_message(self):
        error = classify_connect_error(ValueError("weird reply"), "10.0.0.1", 8728)
        assert error.kind == RouterErrorKind.UNKNOWN
        assert error.message == "weird reply"

    def test_router_errors_pass_through(self):
        original = RouterError(RouterErrorKind.NOT_FOUND, "gone")
        assert classify_connect_error(original, "h", 1) is original
        assert classify_command_error(original) is original

    @pytest.mark.parametrize("exc", [
        BrokenPipeError("Broken pipe"),
        ConnectionResetError("reset by peer"),
        ros_exceptions.RouterOsApiConnectionError("socket gone"),
        OSError("Bad file descriptor"),
    ])
    def test_disconnects(self, exc):
        assert is_disconnect(exc)
        assert classify_command_error(exc).kind == RouterErrorKind.DISCONNECTED

    def test_command_failure_is_unknown(self):
        assert not is_disconnect(ValueError("no such item"))
        assert classify_command_error(ValueError("no such item")).kind == RouterErrorKind.UNKNOWN


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_opens_transport(self, network):
        session = await open_session(network, port=8729, name="HQ")
        transport = network.transports[0]

        assert transport.opened
        assert transport.port == 8729
        assert session.port == 8729
        assert session.name == "HQ"
        assert len(session.session_id) == 32
        assert session.alive and not session.closed

    @pytest.mark.asyncio
    async def test_explicit_session_id_is_kept(self, network):
        session = await open_session(network, session_id="router-1")
        assert session.session_id == "router-1"

    @pytest.mark.asyncio
    async def test_missing_port_uses_default(self, network):
        session = await open_session(network, port=None)
        assert session.port == 8728

    @pytest.mark.asyncio
    async def test_transport_options_are_forwarded(self, network):
        await open_session(network, use_ssl=True, plaintext_login=False)
        assert network.transports[0].options == {"use_ssl": True, "plaintext_login": False}

    @pytest.mark.asyncio
    async def test_open_error_timeout_names_port(self, network):
        network.configure = lambda t: setattr(t, "open_error", socket.timeout("timed out"))
        with pytest.raises(RouterError) as info:
            await open_session(network, port=8730)
        assert info.value.kind == RouterErrorKind.TIMEOUT
        assert "8730" in info.value.message
        assert network.transports[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_slow_open_times_out(self, network):
        network.configure = lambda t: setattr(t, "open_delay", 0.5)
        with pytest.raises(RouterError) as info:
            await open_session(network, timeout=0.05)
        assert info.value.kind == RouterErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_refused(self, network):
        network.configure = lambda t: setattr(t, "open_error", ConnectionRefusedError(111, "Connection refused"))
        with pytest.raises(RouterError) as info:
            await open_session(network)
        assert info.value.kind == RouterErrorKind.CONNECTION_REFUSED

    @pytest.mark.asyncio
    async def test_bad_credentials(self, network):
        network.configure = lambda t: setattr(
            t, "open_error", ros_exceptions.RouterOsApiError("invalid user name or password (6)"))
        with pytest.raises(RouterError) as info:
            await open_session(network)
        assert info.value.kind == RouterErrorKind.AUTHENTICATION_FAILED


class TestQueries:
    @pytest.mark.asyncio
    async def test_refresh_populates_metadata(self, network):
        session = await open_session(network)
        await session.refresh()

        assert session.identity == "HQ-Router"
        assert session.version == "7.12.1 (stable)"
        assert session.model == "RBD52G-5HacD2HnD"
        assert session.name == "HQ-Router"
        assert session.last_known_stats == ResourceStats(
            cpu_load=7, free_memory=104857600, total_memory=268435456,
            uptime="1d2h3m", version="7.12.1 (stable)", board_name="hAP ac2",
        )

    @pytest.mark.asyncio
    async def test_board_info_is_best_effort(self, network):
        session = await open_session(network)
        network.transports[0].failing_paths[ROUTERBOARD_PATH] = Exception("no such command prefix")

        assert await session.fetch_board_info() == {}
        await session.refresh()
        assert session.model == "hAP ac2"

    @pytest.mark.asyncio
    async def test_board_info_propagates_disconnect(self, network):
        session = await open_session(network)
        network.transports[0].failing_paths[ROUTERBOARD_PATH] = BrokenPipeError("Broken pipe")

        with pytest.raises(RouterError) as info:
            await session.fetch_board_info()
        assert info.value.kind == RouterErrorKind.DISCONNECTED

    @pytest.mark.asyncio
    async def test_identity_of_empty_reply(self, network):
        session = await open_session(network)
        network.transports[0].tables["/system/identity"] = []
        assert await session.fetch_identity() == "Unknown"

    @pytest.mark.asyncio
    async def test_active_sessions_are_normalized(self, network):
        session = await open_session(network)
        sessions = await session.list_active_sessions()

        assert sessions == [{
            "id": "*1",
            "user": "alice",
            "address": "10.5.50.2",
            "mac": "AA:BB:CC:00:11:22",
            "loginBy": "http-chap",
            "uptime": "5m",
            "bytesIn": 1024,
            "bytesOut": 2048,
        }]

    @pytest.mark.asyncio
    async def test_hotspot_users_are_normalized(self, network):
        session = await open_session(network)
        alice, bob = await session.list_hotspot_users()

        assert alice["id"] == "*A"
        assert alice["disabled"] is False
        assert alice["bytesIn"] == 10
        assert bob["id"] == "*B"
        assert bob["disabled"] is True
        assert bob["uptime"] is None
        assert bob["bytesOut"] == 0
        assert set(alice) == set(bob)

    @pytest.mark.asyncio
    async def test_profiles_are_normalized(self, network):
        session = await open_session(network)
        profiles = await session.list_hotspot_profiles()
        assert profiles[0]["sharedUsers"] == "1"
        assert profiles[0]["rateLimit"] == "2M/2M"
        assert profiles[0]["keepaliveTimeout"] == "2m"

    def test_normalize_row_fills_missing_fields(self):
        row = normalize_row({"name": "guest", "bytes-in": "garbage"}, HOTSPOT_USER_FIELDS)
        assert row == {
            "id": None, "name": "guest", "password": None, "profile": None, "uptime": None,
            "bytesIn": 0, "bytesOut": 0, "disabled": False,
        }


class TestMutations:
    @pytest.mark.asyncio
    async def test_create_user_sends_only_given_fields(self, network):
        session = await open_session(network)
        await session.create_hotspot_user("guest1", "pw1")
        await session.create_hotspot_user("guest2", "pw2", profile="1-hour", comment="lobby")

        assert network.transports[0].added == [
            (HOTSPOT_USER_PATH, {"name": "guest1", "password": "pw1"}),
            (HOTSPOT_USER_PATH, {"name": "guest2", "password": "pw2", "profile": "1-hour", "comment": "lobby"}),
        ]

    @pytest.mark.asyncio
    async def test_delete_and_disconnect(self, network):
        session = await open_session(network)
        await session.delete_hotspot_user("*A")
        await session.disconnect_active_session("*1")

        assert network.transports[0].removed == [
            (HOTSPOT_USER_PATH, "*A"),
            (HOTSPOT_ACTIVE_PATH, "*1"),
        ]


class TestFailures:
    @pytest.mark.asyncio
    async def test_dropped_connection_is_disconnected(self, network):
        session = await open_session(network)
        network.transports[0].command_error = ConnectionResetError("Connection reset by peer")

        with pytest.raises(RouterError) as info:
            await session.list_hotspot_users()
        assert info.value.kind == RouterErrorKind.DISCONNECTED
        assert not session.alive

    @pytest.mark.asyncio
    async def test_command_failure_keeps_session_alive(self, network):
        session = await open_session(network)
        network.transports[0].command_error = ValueError("no such item")

        with pytest.raises(RouterError) as info:
            await session.delete_hotspot_user("*Z")
        assert info.value.kind == RouterErrorKind.UNKNOWN
        assert session.alive

    @pytest.mark.asyncio
    async def test_slow_command_times_out(self, network):
        session = await open_session(network, command_timeout=0.05)
        network.transports[0].command_delay = 0.3

        with pytest.raises(RouterError) as info:
            await session.list_active_sessions()
        assert info.value.kind == RouterErrorKind.TIMEOUT
        assert "did not respond" in info.value.message

    @pytest.mark.asyncio
    async def test_timeout_leaves_session_unusable(self, network):
        session = await open_session(network, command_timeout=0.05)
        transport = network.transports[0]
        transport.command_delay = 0.3

        with pytest.raises(RouterError) as info:
            await session.list_active_sessions()
        assert info.value.kind == RouterErrorKind.TIMEOUT
        assert session.stalled
        assert not session.alive

        # the timed-out worker is still talking to the router
        transport.command_delay = 0.0
        with pytest.raises(RouterError) as info:
            await session.list_hotspot_users()
        assert info.value.kind == RouterErrorKind.DISCONNECTED
        assert "reconnect required" in info.value.message

        await asyncio.sleep(0.35)
        assert transport.max_active_calls == 1
        assert transport.calls == [("list", HOTSPOT_ACTIVE_PATH)]

    @pytest.mark.asyncio
    async def test_board_info_does_not_hide_a_stall(self, network):
        session = await open_session(network, command_timeout=0.05)
        network.transports[0].command_delay = 0.3

        with pytest.raises(RouterError) as info:
            await session.fetch_board_info()
        assert info.value.kind == RouterErrorKind.TIMEOUT
        assert session.stalled
        await asyncio.sleep(0.3)

    @pytest.mark.asyncio
    async def test_ping_counts_failures(self, network):
        session = await open_session(network)
        transport = network.transports[0]
        transport.command_error = ValueError("busy")

        for _ in range(2):
            with pytest.raises(RouterError):
                await session.ping()
        assert session.consecutive_failures == 2

        transport.command_error = None
        assert await session.ping() is True
        assert session.consecutive_failures == 0


class TestClose:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, network):
        session = await open_session(network)
        await session.close()
        await session.close()

        assert network.transports[0].close_calls == 1
        assert session.closed
        assert session.to_dict()["isActive"] is False

    @pytest.mark.asyncio
    async def test_operations_after_close_are_disconnected(self, network):
        session = await open_session(network)
        await session.close()

        with pytest.raises(RouterError) as info:
            await session.list_active_sessions()
        assert info.value.kind == RouterErrorKind.DISCONNECTED
        assert network.transports[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_close_stops_queued_commands(self, network):
        session = await open_session(network)
        transport = network.transports[0]
        transport.command_delay = 0.2

        running = asyncio.create_task(session.list_hotspot_users())
        queued = asyncio.create_task(session.list_active_sessions())
        await asyncio.sleep(0.05)
        await session.close()

        first, second = await asyncio.gather(running, queued, return_exceptions=True)
        assert isinstance(first, list)
        assert isinstance(second, RouterError)
        assert second.kind == RouterErrorKind.DISCONNECTED
        assert transport.calls == [("list", HOTSPOT_USER_PATH)]
        assert transport.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_error_is_raised_once(self, network):
        session = await open_session(network)
        network.transports[0].close_error = BrokenPipeError("Broken pipe")

        with pytest.raises(RouterError) as info:
            await session.close()
        assert info.value.kind == RouterErrorKind.DISCONNECTED

        await session.close()
        assert session.closed
        assert network.transports[0].close_calls == 1


class TestExternalView:
    @pytest.mark.asyncio
    async def test_to_dict_never_contains_password(self, network):
        session = await open_session(network, password="do-not-leak")
        await session.refresh()
        view = session.to_dict()

        assert "password" not in view
        assert "do-not-leak" not in str(view)
        assert "do-not-leak" not in repr(session)
        assert view["identity"] == "HQ-Router"
        assert view["cpuLoad"] == 7
        assert view["isActive"] is True

    @pytest.mark.asyncio
    async def test_to_dict_before_refresh_uses_defaults(self, network):
        session = await open_session(network)
        view = session.to_dict()
        assert view["uptime"] == "Unknown"
        assert view["cpuLoad"] == 0
