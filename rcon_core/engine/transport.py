"""
Transport Layer

Long-lived asyncio byte transports owned by a single RCON session:
- StreamTransport: TCP stream with exact-length reads
- DatagramTransport: connected UDP socket with queued datagrams

Neither transport knows anything about RCON framing. Receive timeouts on the
stream are applied by the client around a whole packet; the datagram
transport takes a timeout per datagram because the GoldSrc client uses
silence as its end-of-response signal.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Union

import structlog

from rcon_core.config import Settings, settings as default_settings
from rcon_core.exceptions import (
    TransportError,
    ConnectionRefusedError as RconConnectionRefusedError,
    ConnectionTimeoutError,
    SendError,
    ReceiveError,
    ReceiveTimeoutError,
)

logger = structlog.get_logger()


class StreamTransport:
    """
    TCP transport with a persistent connection.

    Every send is written as one buffer and flushed; Minecraft drops packets
    that arrive split across writes.
    """

    def __init__(self, host: str, port: int, settings: Optional[Settings] = None):
        self.host = host
        self.port = port
        self.settings = settings or default_settings

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected and self._writer is not None

    async def connect(self) -> None:
        """Establish the TCP connection."""
        if self._connected:
            return

        timeout = self.settings.connect_timeout_sec
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=timeout,
            )
            self._connected = True
            logger.debug("tcp_connected", host=self.host, port=self.port)
        except asyncio.TimeoutError:
            raise ConnectionTimeoutError(
                f"Connection timeout to {self.host}:{self.port}",
                details={"timeout_sec": timeout},
            )
        except ConnectionRefusedError as e:
            raise RconConnectionRefusedError(
                f"Connection refused by {self.host}:{self.port}",
                details={"error": str(e)},
            )
        except OSError as e:
            raise TransportError(
                f"Failed to connect to {self.host}:{self.port}: {e}",
                details={"error": str(e)},
            )

    async def send(self, data: bytes) -> None:
        """Write one buffer and wait for it to drain."""
        if not self.connected:
            raise TransportError("Not connected")

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            self._connected = False
            raise SendError(
                f"Failed to send data to {self.host}:{self.port}",
                details={"error": str(e), "data_size": len(data)},
            )

    async def read_exactly(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, failing if the peer closes first."""
        if not self.connected or self._reader is None:
            raise TransportError("Not connected")

        try:
            return await self._reader.readexactly(size)
        except asyncio.IncompleteReadError as e:
            self._connected = False
            raise ReceiveError(
                "Connection closed by peer",
                details={"expected": size, "received": len(e.partial)},
            )
        except OSError as e:
            self._connected = False
            raise ReceiveError(
                f"Failed to receive from {self.host}:{self.port}",
                details={"error": str(e)},
            )

    async def close(self) -> None:
        """Close the connection."""
        if self._writer:
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except OSError as e:
                logger.warning(
                    "tcp_close_error",
                    host=self.host,
                    port=self.port,
                    error=str(e),
                )
        self._reader = None
        self._writer = None
        self._connected = False
        logger.debug("tcp_closed", host=self.host, port=self.port)


class _DatagramQueueProtocol(asyncio.DatagramProtocol):
    """Feeds received datagrams and socket errors into a queue."""

    def __init__(self, queue: "asyncio.Queue[Union[bytes, Exception]]"):
        self.queue = queue

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self.queue.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)


class DatagramTransport:
    """
    UDP transport bound to a single remote address.

    Datagrams are truncated to ``udp_buffer_size`` bytes, like a fixed
    receive buffer would.
    """

    def __init__(self, host: str, port: int, settings: Optional[Settings] = None):
        self.host = host
        self.port = port
        self.settings = settings or default_settings

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._queue: "asyncio.Queue[Union[bytes, Exception]]" = asyncio.Queue()

    @property
    def connected(self) -> bool:
        return self._transport is not None

    async def connect(self) -> None:
        """Create the UDP endpoint."""
        if self._transport is not None:
            return

        loop = asyncio.get_running_loop()
        try:
            self._transport, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramQueueProtocol(self._queue),
                remote_addr=(self.host, self.port),
            )
        except OSError as exc:
            logger.error(
                "udp_target_unreachable",
                host=self.host,
                port=self.port,
                error=str(exc),
            )
            raise RconConnectionRefusedError(
                f"UDP target unreachable {self.host}:{self.port}",
                details={"error": str(exc)},
            )
        logger.debug("udp_connected", host=self.host, port=self.port)

    async def send(self, data: bytes) -> None:
        """Send one datagram."""
        if not self.connected:
            raise TransportError("Not connected")

        try:
            self._transport.sendto(data)
        except OSError as e:
            raise SendError(
                f"Failed to send datagram to {self.host}:{self.port}",
                details={"error": str(e), "data_size": len(data)},
            )

    async def recv(self, timeout: float) -> bytes:
        """Wait up to ``timeout`` seconds for the next datagram."""
        if not self.connected:
            raise TransportError("Not connected")

        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ReceiveTimeoutError(
                f"Receive timeout from {self.host}:{self.port}",
                details={"timeout_sec": timeout},
            )

        if isinstance(item, Exception):
            raise ReceiveError(
                f"Failed to receive from {self.host}:{self.port}",
                details={"error": str(item)},
            )
        return item[: self.settings.udp_buffer_size]

    async def close(self) -> None:
        """Close the UDP endpoint."""
        if self._transport is not None:
            self._transport.close()
        self._transport = None
        logger.debug("udp_closed", host=self.host, port=self.port)
