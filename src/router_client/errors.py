"""
Error taxonomy for router sessions and the connection registry
"""

import socket
import asyncio
from enum import Enum
from typing import Iterator

from routeros_api import exceptions as ros_exceptions


class RouterErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    AUTHENTICATION_FAILED = "authentication_failed"
    DISCONNECTED = "disconnected"
    NOT_FOUND = "not_found"
    PROTOCOL_PARSE_ERROR = "protocol_parse_error"
    UNKNOWN = "unknown"


class RouterError(Exception):
    """Classified failure of a router operation"""

    def __init__(self, kind: RouterErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self):
        return f"RouterError({self.kind.value}, {self.message!r})"


_TIMEOUT_TYPES = (socket.timeout, asyncio.TimeoutError, TimeoutError)

_AUTH_MARKERS = (
    "invalid user name or password",
    "cannot log in",
    "authentication",
    "login failure",
)

_DISCONNECT_MARKERS = (
    "connection closed",
    "broken pipe",
    "connection reset",
    "not connected",
    "bad file descriptor",
)


def _error_chain(exc: BaseException) -> Iterator[BaseException]:
    """The exception, its causes, and exceptions wrapped in its args"""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.append(current.__cause__)
        pending.append(current.__context__)
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))


def _message_of(exc: BaseException) -> str:
    parts = []
    for arg in exc.args:
        if isinstance(arg, bytes):
            parts.append(arg.decode("utf-8", errors="replace"))
        else:
            parts.append(str(arg))
    return " ".join(parts) or exc.__class__.__name__


def classify_connect_error(exc: BaseException, host: str, port: int) -> RouterError:
    """Map a failed connect/login to TIMEOUT, CONNECTION_REFUSED, AUTHENTICATION_FAILED or UNKNOWN"""
    if isinstance(exc, RouterError):
        return exc

    chain = list(_error_chain(exc))
    text = " ".join(_message_of(e) for e in chain).lower()

    if any(isinstance(e, _TIMEOUT_TYPES) for e in chain) or "timed out" in text:
        return RouterError(
            RouterErrorKind.TIMEOUT,
            f"Connection timeout. Check if router IP is correct and API is enabled on port {port}"
        )
    if any(isinstance(e, ConnectionRefusedError) for e in chain) or "refused" in text:
        return RouterError(
            RouterErrorKind.CONNECTION_REFUSED,
            f"Connection refused by {host}:{port}. Make sure API service is running on the router"
        )
    if any(marker in text for marker in _AUTH_MARKERS):
        return RouterError(
            RouterErrorKind.AUTHENTICATION_FAILED,
            "Authentication failed. Check username and password"
        )
    return RouterError(RouterErrorKind.UNKNOWN, _message_of(exc))


def is_disconnect(exc: BaseException) -> bool:
    """True when the failure means the transport itself is gone"""
    for e in _error_chain(exc):
        if isinstance(e, (ConnectionError, ros_exceptions.RouterOsApiConnectionError,
                          ros_exceptions.FatalRouterOsApiError)):
            return True
    text = " ".join(_message_of(e) for e in _error_chain(exc)).lower()
    return any(marker in text for marker in _DISCONNECT_MARKERS)


def classify_command_error(exc: BaseException) -> RouterError:
    """Map a failed remote command to TIMEOUT, DISCONNECTED or UNKNOWN"""
    if isinstance(exc, RouterError):
        return exc
    if is_disconnect(exc):
        return RouterError(RouterErrorKind.DISCONNECTED, f"Router connection lost: {_message_of(exc)}")
    if any(isinstance(e, _TIMEOUT_TYPES) for e in _error_chain(exc)):
        return RouterError(RouterErrorKind.TIMEOUT, f"Router did not respond: {_message_of(exc)}")
    return RouterError(RouterErrorKind.UNKNOWN, _message_of(exc))
