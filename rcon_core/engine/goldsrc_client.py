"""
GoldSrc RCON client (UDP challenge-response protocol)

Every command needs a fresh challenge token from the server. Replies have no
terminator and may span several datagrams, so a response is considered
complete once the server has been silent for one response timeout.
"""
from __future__ import annotations

from typing import Optional

import structlog

from rcon_core.config import Settings, settings as default_settings
from rcon_core.engine.text import strip_trailing_padding
from rcon_core.engine.transport import DatagramTransport
from rcon_core.exceptions import (
    AuthenticationFailed,
    ProtocolViolation,
    ReceiveTimeoutError,
)

logger = structlog.get_logger()

OOB_PREFIX = b"\xff\xff\xff\xff"
CHALLENGE_REQUEST = OOB_PREFIX + b"challenge rcon"

# Leading bytes servers pad reply datagrams with
PADDING_BYTES = frozenset({0xFF, 0xFE, 0x1D, 0x1C, 0x00})
# Every reply fragment starts with one marker byte after the padding ('l')
RESPONSE_MARKER_SIZE = 1

BAD_PASSWORD_REPLY = "Bad rcon_password"


def clean_chunk(chunk: bytes) -> str:
    """Strip padding, the marker byte and trailing NULs from one datagram."""
    start = 0
    while start < len(chunk) and chunk[start] in PADDING_BYTES:
        start += 1
    start += RESPONSE_MARKER_SIZE

    end = len(chunk)
    while end > start and chunk[end - 1] == 0x00:
        end -= 1

    return chunk[start:end].decode("utf-8", errors="replace")


def parse_challenge(text: str) -> str:
    """Pull the challenge token out of a ``challenge rcon <token>`` reply."""
    tokens = text.split()
    if not tokens:
        raise ProtocolViolation("Got empty challenge")
    challenge = tokens[-1].strip()
    if not challenge.isdigit():
        raise ProtocolViolation(
            "Got malformed challenge",
            details={"response": text[:64]},
        )
    return challenge


class UdpChallengeClient:
    """
    GoldSrc RCON session.

    Holds nothing but the password and the socket; no authenticated state
    survives between commands.
    """

    def __init__(
        self,
        transport: DatagramTransport,
        password: str = "",
        settings: Optional[Settings] = None,
        timeout_sec: Optional[float] = None,
    ):
        self.transport = transport
        self.password = password
        self.settings = settings or default_settings
        self.timeout_sec = (
            timeout_sec if timeout_sec is not None else self.settings.response_timeout_sec
        )

    async def connect(self) -> None:
        await self.transport.connect()

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "UdpChallengeClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def authenticate(self, password: str) -> None:
        """Remember the password; GoldSrc checks it on every command instead."""
        self.password = password

    async def send_raw(self, data: bytes) -> str:
        """Send one datagram and collect the reply until the server goes quiet."""
        await self.transport.send(data)

        chunks = []
        while True:
            try:
                chunk = await self.transport.recv(self.timeout_sec)
            except ReceiveTimeoutError:
                if chunks:
                    break
                raise ReceiveTimeoutError(
                    "Timed out waiting for response from server",
                    details={"timeout_sec": self.timeout_sec},
                )
            chunks.append(clean_chunk(chunk))
            logger.debug("datagram_received", size=len(chunk), chunk_index=len(chunks))

        return "".join(chunks)

    async def get_challenge(self) -> str:
        """Request a fresh challenge token."""
        challenge = parse_challenge(await self.send_raw(CHALLENGE_REQUEST))
        logger.debug("challenge_received", challenge=challenge)
        return challenge

    def build_command(self, challenge: str, command: str) -> bytes:
        return OOB_PREFIX + f'rcon {challenge} "{self.password}" {command}\x00'.encode("utf-8")

    async def send_command(self, command: str) -> str:
        """Run a console command and return its response text."""
        challenge = await self.get_challenge()
        response = strip_trailing_padding(await self.send_raw(self.build_command(challenge, command)))
        if response.startswith(BAD_PASSWORD_REPLY):
            logger.warning("auth_rejected", host=self.transport.host, port=self.transport.port)
            raise AuthenticationFailed("Authentication failed, bad password?")
        return response
