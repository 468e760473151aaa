"""
MNDP discovery manager: bounded active scans and a long-lived passive listener
"""

import asyncio
import inspect
import logging
import socket
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import DiscoveredDevice, DiscoveryResult
from .mndp_codec import MNDP_PORT, MNDPParseError, create_mndp_request, parse_mndp_packet
from .network_discovery import get_local_interfaces, get_broadcast_targets

logger = logging.getLogger(__name__)

Datagram = Tuple[Optional[bytes], Any]


class _MNDPProtocol(asyncio.DatagramProtocol):
    """Pushes received datagrams into a bounded queue"""

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue

    def datagram_received(self, data: bytes, addr):
        try:
            self.queue.put_nowait((data, addr))
        except asyncio.QueueFull:
            logger.debug(f"MNDP receive queue full, dropping packet from {addr[0]}")

    def error_received(self, exc):
        logger.warning(f"MNDP socket error: {exc}")

    def connection_lost(self, exc):
        if exc:
            logger.error(f"MNDP socket closed with error: {exc}")
        try:
            self.queue.put_nowait((None, exc))
        except asyncio.QueueFull:
            pass


class MNDPListener:
    """Handle for a passive listener; close() stops delivery"""

    def __init__(self, transport: asyncio.DatagramTransport, task: asyncio.Task):
        self._transport = transport
        self._task = task
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._task.cancel()
        self._transport.close()
        logger.info("MNDP listener stopped")


class MNDPDiscovery:
    """Discovers RouterOS devices on the local broadcast domain"""

    def __init__(self, config: Dict):
        self.config = config
        self.port = config.get('port', MNDP_PORT)
        self.bind_address = config.get('bind_address', '0.0.0.0')
        self.scan_timeout = config.get('scan_timeout_seconds', 5)
        self.send_interval = config.get('send_interval_seconds', 1)
        self.queue_size = config.get('queue_size', 256)
        self.neighbor_ttl = config.get('neighbor_ttl_minutes', 30) * 60
        self.max_known_devices = config.get('max_known_devices', 1024)
        self.known_devices: Dict[str, DiscoveredDevice] = {}  # mac -> device, oldest first

    # ================== ACTIVE SCAN ==================

    async def discover(self, timeout: Optional[float] = None) -> DiscoveryResult:
        """
        Broadcast MNDP requests for the scan window and collect replies.

        Never raises: socket failures end the scan with whatever was
        collected so far.
        """
        scan_timeout = timeout if timeout is not None else self.scan_timeout
        start_time = time.time()
        loop = asyncio.get_running_loop()
        targets = self._broadcast_targets()
        devices: Dict[str, DiscoveredDevice] = {}
        packets_received = 0

        try:
            sock = self._open_socket()
        except OSError as e:
            logger.error(f"MNDP discovery failed to bind port {self.port}: {e}")
            return DiscoveryResult([], "mndp", time.time() - start_time, 0, targets)

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        try:
            transport, _ = await loop.create_datagram_endpoint(lambda: _MNDPProtocol(queue), sock=sock)
        except Exception as e:
            logger.error(f"MNDP discovery socket setup failed: {e}")
            sock.close()
            return DiscoveryResult([], "mndp", time.time() - start_time, 0, targets)

        logger.info(f"[SEARCH] MNDP discovery started on port {self.port}, targets: {', '.join(targets)}")
        sender = asyncio.create_task(self._send_loop(transport, targets))
        deadline = loop.time() + scan_timeout

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    data, addr = await asyncio.wait_for(queue.get(), remaining)
                except asyncio.TimeoutError:
                    break

                if data is None:
                    logger.error(f"MNDP discovery socket lost: {addr}")
                    break

                packets_received += 1
                device = self._accept_packet(data, addr)
                if device:
                    devices[device.mac_address] = device
                    logger.info(f"[OK] Discovered: {device.identity} at {device.source_address} ({device.mac_address})")
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
            transport.close()

        found = list(devices.values())
        self._remember(*found)
        duration = time.time() - start_time
        logger.info(f"[PASS] MNDP discovery complete. Found {len(found)} router(s) in {duration:.1f}s")
        return DiscoveryResult(found, "mndp", duration, packets_received, targets)

    async def _send_loop(self, transport: asyncio.DatagramTransport, targets: List[str]):
        """Re-send the request every interval until cancelled"""
        packet = create_mndp_request()
        while True:
            for target in targets:
                try:
                    transport.sendto(packet, (target, self.port))
                except OSError as e:
                    logger.debug(f"MNDP send to {target} failed: {e}")
            await asyncio.sleep(self.send_interval)

    # ================== PASSIVE LISTENER ==================

    async def listen(self, on_device: Callable[[DiscoveredDevice], Any]) -> MNDPListener:
        """
        Bind the MNDP port and call on_device for every valid announcement.
        No deduplication. Coroutine callbacks are awaited in order.
        """
        loop = asyncio.get_running_loop()
        sock = self._open_socket()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        try:
            transport, _ = await loop.create_datagram_endpoint(lambda: _MNDPProtocol(queue), sock=sock)
        except Exception:
            sock.close()
            raise

        async def consume():
            while True:
                data, addr = await queue.get()
                if data is None:
                    logger.warning("MNDP listener socket closed")
                    return
                device = self._accept_packet(data, addr)
                if not device:
                    continue
                self._remember(device)
                try:
                    result = on_device(device)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"MNDP listener callback failed: {e}")

        task = asyncio.create_task(consume())
        logger.info(f"MNDP listener active on {self.bind_address}:{self.port}")
        return MNDPListener(transport, task)

    # ================== HELPERS ==================

    def _open_socket(self) -> socket.socket:
        """UDP socket with broadcast and address reuse, bound to the MNDP port"""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, 'SO_REUSEPORT'):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError as e:
                    logger.debug(f"SO_REUSEPORT not supported: {e}")
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            sock.bind((self.bind_address, self.port))
        except OSError:
            sock.close()
            raise
        return sock

    def _broadcast_targets(self) -> List[str]:
        interfaces = get_local_interfaces()
        if not interfaces:
            logger.warning("No usable network interfaces found, broadcasting to 255.255.255.255 only")
        return get_broadcast_targets(interfaces)

    def _accept_packet(self, data: bytes, addr) -> Optional[DiscoveredDevice]:
        """Decode one datagram; None for echoes, noise and malformed packets"""
        try:
            device = parse_mndp_packet(data)
        except MNDPParseError as e:
            logger.warning(f"Skipping MNDP packet from {addr[0]} ({e.kind.value}): {e.message}")
            return None
        except Exception as e:
            error = MNDPParseError(str(e))
            logger.warning(f"Skipping MNDP packet from {addr[0]} ({error.kind.value}): {error.message}")
            return None

        if not device.is_valid():
            return None

        device.source_address = addr[0]
        device.discovered_at = datetime.now(timezone.utc).isoformat()
        return device

    # ================== NEIGHBOR TABLE ==================

    def recent_devices(self) -> List[DiscoveredDevice]:
        """Devices heard within the neighbor TTL, oldest first"""
        self._prune_known_devices()
        return list(self.known_devices.values())

    def _remember(self, *devices: DiscoveredDevice):
        for device in devices:
            # re-insert so dict order stays oldest-first
            self.known_devices.pop(device.mac_address, None)
            self.known_devices[device.mac_address] = device
        self._prune_known_devices()

    def _prune_known_devices(self, now: Optional[datetime] = None):
        """Drop devices older than the TTL, then the oldest beyond max_known_devices"""
        if self.neighbor_ttl > 0:
            cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=self.neighbor_ttl)
            for mac, device in list(self.known_devices.items()):
                seen = _parse_timestamp(device.discovered_at)
                if seen is None or seen < cutoff:
                    del self.known_devices[mac]

        overflow = len(self.known_devices) - self.max_known_devices
        if overflow > 0:
            for mac in list(self.known_devices)[:overflow]:
                del self.known_devices[mac]
            logger.debug(f"Neighbor table full, dropped {overflow} oldest device(s)")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        seen = datetime.fromisoformat(value)
    except ValueError:
        return None
    if seen.tzinfo is None:
        seen = seen.replace(tzinfo=timezone.utc)
    return seen
