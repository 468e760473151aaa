"""
Local network interface helpers for MNDP broadcast discovery
"""

import socket
import ipaddress
import logging
from typing import List
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)

GENERAL_BROADCAST = "255.255.255.255"

@dataclass
class InterfaceBroadcast:
    """IPv4 interface with its subnet broadcast address"""
    interface: str
    address: str
    netmask: str
    broadcast: str


def calculate_broadcast(address: str, netmask: str) -> str:
    """Per-octet address | ~netmask"""
    ip_octets = [int(part) for part in address.split('.')]
    mask_octets = [int(part) for part in netmask.split('.')]
    if len(ip_octets) != 4 or len(mask_octets) != 4:
        raise ValueError(f"Invalid IPv4 address/netmask: {address}/{netmask}")
    return '.'.join(str(octet | (~mask & 255)) for octet, mask in zip(ip_octets, mask_octets))


def get_local_interfaces() -> List[InterfaceBroadcast]:
    """Enumerate non-loopback IPv4 interfaces and their broadcast addresses"""
    interfaces = []
    try:
        addresses = psutil.net_if_addrs()
    except Exception as e:
        logger.warning(f"Interface enumeration failed: {e}")
        return interfaces

    for name, addrs in addresses.items():
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            try:
                if ipaddress.IPv4Address(addr.address).is_loopback:
                    continue
                broadcast = calculate_broadcast(addr.address, addr.netmask)
            except ValueError as e:
                logger.debug(f"Skipping interface {name}: {e}")
                continue

            interfaces.append(InterfaceBroadcast(
                interface=name,
                address=addr.address,
                netmask=addr.netmask,
                broadcast=broadcast
            ))

    return interfaces


def get_broadcast_targets(interfaces: List[InterfaceBroadcast]) -> List[str]:
    """Interface broadcasts plus the general broadcast, without duplicates"""
    targets = []
    for iface in interfaces:
        if iface.broadcast not in targets:
            targets.append(iface.broadcast)
    if GENERAL_BROADCAST not in targets:
        targets.append(GENERAL_BROADCAST)
    return targets
