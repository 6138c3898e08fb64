"""
Source RCON client (TCP packet protocol)

Used by Source engine servers and the engines imitating them (Minecraft,
Factorio). Responses may span several packets sharing the command's id and
carry no "last fragment" marker, so every command is followed by a sentinel
packet: the server answers in order, and the sentinel's reply can only
arrive after the final fragment of the command's response.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from rcon_core.config import Settings, settings as default_settings
from rcon_core.engine.packet import (
    AUTH_FAILED_ID,
    LENGTH_FIELD,
    SERVERDATA_AUTH,
    SERVERDATA_AUTH_RESPONSE,
    SERVERDATA_EXECCOMMAND,
    SERVERDATA_RESPONSE_VALUE,
    Packet,
    check_length,
)
from rcon_core.engine.text import strip_trailing_padding
from rcon_core.engine.transport import StreamTransport
from rcon_core.exceptions import (
    AuthenticationFailed,
    ProtocolViolation,
    ReceiveTimeoutError,
)
from rcon_core.models import Game, get_profile

logger = structlog.get_logger()


class TcpPacketClient:
    """
    One authenticated Source RCON session.

    The session owns its stream and a packet id counter that starts at 0
    and is incremented for every packet sent.
    """

    def __init__(
        self,
        transport: StreamTransport,
        game: Game = Game.SOURCE,
        settings: Optional[Settings] = None,
        timeout_sec: Optional[float] = None,
    ):
        self.transport = transport
        self.profile = get_profile(game)
        self.settings = settings or default_settings
        self.timeout_sec = (
            timeout_sec if timeout_sec is not None else self.settings.response_timeout_sec
        )
        self.next_id = 0

    async def connect(self) -> None:
        await self.transport.connect()

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "TcpPacketClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def send_packet(self, packet_type: int, body: bytes) -> int:
        """Send one packet under a fresh id and return that id."""
        packet = Packet(self.next_id, packet_type, body)
        self.next_id += 1
        await self.transport.send(packet.encode())
        logger.debug("packet_sent", id=packet.id, type=packet.type, size=packet.length)
        return packet.id

    async def recv_packet(self, phase: str = "command") -> Packet:
        """Read one packet, bounded by the response timeout."""
        try:
            packet = await asyncio.wait_for(self._read_packet(), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            if phase == "auth":
                message = "Timed out waiting for response from server during authentication"
            else:
                message = "Timed out waiting for response from server"
            raise ReceiveTimeoutError(
                message,
                details={"phase": phase, "timeout_sec": self.timeout_sec},
            )
        logger.debug("packet_received", id=packet.id, type=packet.type, size=packet.length)
        return packet

    async def _read_packet(self) -> Packet:
        (length,) = LENGTH_FIELD.unpack(await self.transport.read_exactly(LENGTH_FIELD.size))
        check_length(length, self.settings.max_packet_bytes)
        return Packet.from_payload(await self.transport.read_exactly(length))

    async def authenticate(self, password: str) -> None:
        """
        Log in with the RCON password.

        Raises:
            AuthenticationFailed: Server answered with id -1
            ProtocolViolation: Server answered with an unexpected packet type
            ReceiveTimeoutError: No answer within the response timeout
        """
        await self.send_packet(SERVERDATA_AUTH, password.encode("utf-8"))

        if self.profile.expects_auth_ack:
            ack = await self.recv_packet(phase="auth")
            if ack.type != SERVERDATA_RESPONSE_VALUE:
                raise ProtocolViolation(
                    "Server sent unexpected packet during authentication",
                    details={"id": ack.id, "type": ack.type, "expected_type": SERVERDATA_RESPONSE_VALUE},
                )

        response = await self.recv_packet(phase="auth")
        if response.type != SERVERDATA_AUTH_RESPONSE:
            raise ProtocolViolation(
                "Server sent unexpected packet during authentication",
                details={"id": response.id, "type": response.type, "expected_type": SERVERDATA_AUTH_RESPONSE},
            )
        if response.id == AUTH_FAILED_ID:
            logger.warning("auth_rejected", host=self.transport.host, port=self.transport.port)
            raise AuthenticationFailed("Authentication failed, bad password?")

        logger.info("authenticated", host=self.transport.host, game=self.profile.game.value)

    async def send_command(self, command: str) -> str:
        """
        Run a console command and return its full response text.

        A failed call leaves the session out of step: fragments and the
        sentinel reply of a timed-out command may still arrive, and the next
        command then fails with ProtocolViolation on their ids. Close the
        client and open a new one after any error.
        """
        command_id = await self.send_packet(SERVERDATA_EXECCOMMAND, command.encode("utf-8"))
        sentinel_id = await self.send_packet(self.profile.sentinel_type, self.profile.sentinel_body)

        fragments = []
        while True:
            packet = await self.recv_packet()
            if packet.id == command_id and packet.type == SERVERDATA_RESPONSE_VALUE:
                fragments.append(packet.text)
                continue
            if packet.id == sentinel_id:
                break
            raise ProtocolViolation(
                "Server sent unexpected response packet",
                details={
                    "id": packet.id,
                    "type": packet.type,
                    "command_id": command_id,
                    "sentinel_id": sentinel_id,
                },
            )

        logger.debug("command_completed", command_id=command_id, fragments=len(fragments))
        return strip_trailing_padding("".join(fragments))
