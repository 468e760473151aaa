"""
MNDP (MikroTik Neighbor Discovery Protocol) packet codec

Packet layout: 4-byte header (sequence, ignored) followed by TLV records.
Type and length are little-endian u16. Values are mostly UTF-8 strings,
uptime is a little-endian u32 and the IPv6 address is read as eight
big-endian u16 groups. The mixed byte order is how devices send it.
"""

import struct
import logging
from typing import Iterable, Tuple, Union

from router_client.errors import RouterError, RouterErrorKind

from .models import DiscoveredDevice

logger = logging.getLogger(__name__)

MNDP_PORT = 5678
HEADER_SIZE = 4
TLV_HEADER_SIZE = 4

# TLV type codes
TLV_MAC_ADDRESS = 0x0001
TLV_IDENTITY = 0x0005
TLV_VERSION = 0x0007
TLV_PLATFORM = 0x0008
TLV_UPTIME = 0x000A
TLV_SOFTWARE_ID = 0x000B
TLV_BOARD = 0x000C
TLV_UNPACK = 0x000E
TLV_IPV4_ADDRESS = 0x0010
TLV_IPV6_ADDRESS = 0x0011
TLV_INTERFACE_NAME = 0x0012

_STRING_FIELDS = {
    TLV_IDENTITY: "identity",
    TLV_VERSION: "version",
    TLV_PLATFORM: "platform",
    TLV_SOFTWARE_ID: "software_id",
    TLV_BOARD: "board_name",
    TLV_UNPACK: "unpack",
    TLV_INTERFACE_NAME: "interface_name",
}


class MNDPParseError(RouterError):
    """A datagram that cannot be treated as an MNDP packet; only that packet is skipped"""

    def __init__(self, message: str):
        super().__init__(RouterErrorKind.PROTOCOL_PARSE_ERROR, message)


def _decode_string(value: bytes) -> str:
    return value.decode("utf-8", errors="replace").replace("\x00", "")


def _decode_mac(value: bytes) -> str:
    return ":".join(f"{b:02X}" for b in value)


def _decode_ipv4(value: bytes) -> str:
    return ".".join(str(b) for b in value)


def _decode_ipv6(value: bytes) -> str:
    groups = struct.unpack(">8H", value)
    return ":".join(f"{group:x}" for group in groups)


def parse_mndp_packet(data: Union[bytes, bytearray, memoryview]) -> DiscoveredDevice:
    """
    Decode an MNDP datagram into a DiscoveredDevice.

    Unknown TLV types are skipped by length. A record that claims more bytes
    than remain stops parsing; fields decoded before it are kept. Packets of
    HEADER_SIZE bytes or less (our own request echoed back) decode to an
    empty device.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise MNDPParseError(f"Expected bytes, got {type(data).__name__}")

    data = bytes(data)
    device = DiscoveredDevice()

    if len(data) <= HEADER_SIZE:
        return device

    offset = HEADER_SIZE
    while offset + TLV_HEADER_SIZE <= len(data):
        tlv_type, length = struct.unpack_from("<HH", data, offset)
        offset += TLV_HEADER_SIZE

        if offset + length > len(data):
            logger.warning(f"MNDP packet parsing stopped: invalid length {length} at offset {offset}")
            break

        value = data[offset:offset + length]
        offset += length

        if tlv_type in _STRING_FIELDS:
            setattr(device, _STRING_FIELDS[tlv_type], _decode_string(value))
        elif tlv_type == TLV_MAC_ADDRESS:
            if length == 6:
                device.mac_address = _decode_mac(value)
        elif tlv_type == TLV_UPTIME:
            if length == 4:
                device.uptime_seconds = struct.unpack("<I", value)[0]
        elif tlv_type == TLV_IPV4_ADDRESS:
            if length == 4:
                device.ipv4_address = _decode_ipv4(value)
        elif tlv_type == TLV_IPV6_ADDRESS:
            if length == 16:
                device.ipv6_address = _decode_ipv6(value)

    return device


def create_mndp_request() -> bytes:
    """Discovery request: a bare all-zero header, no TLVs"""
    return struct.pack("<HH", 0, 0)


def encode_mndp_packet(records: Iterable[Tuple[int, bytes]], sequence: int = 0) -> bytes:
    """Build a header + TLV packet, in the same layout devices announce with"""
    parts = [struct.pack("<I", sequence)]
    for tlv_type, value in records:
        parts.append(struct.pack("<HH", tlv_type, len(value)))
        parts.append(value)
    return b"".join(parts)
