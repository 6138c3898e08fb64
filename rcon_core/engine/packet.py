"""
Source RCON packet codec

Wire layout (all integers little-endian, signed 32-bit):

    length | id | type | body | 0x00 0x00

``length`` counts everything after itself, so it is always ``10 + len(body)``.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Tuple

from rcon_core.exceptions import ProtocolViolation

SERVERDATA_RESPONSE_VALUE = 0
SERVERDATA_EXECCOMMAND = 2
SERVERDATA_AUTH_RESPONSE = 2
SERVERDATA_AUTH = 3

AUTH_FAILED_ID = -1

LENGTH_FIELD = struct.Struct("<i")
HEADER = struct.Struct("<ii")
TERMINATOR = b"\x00\x00"
MIN_PACKET_LENGTH = HEADER.size + len(TERMINATOR)


@dataclass(frozen=True)
class Packet:
    """One RCON packet"""

    id: int
    type: int
    body: bytes = b""

    @property
    def length(self) -> int:
        return MIN_PACKET_LENGTH + len(self.body)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8, invalid sequences replaced."""
        return self.body.decode("utf-8", errors="replace")

    def encode(self) -> bytes:
        """Serialize the packet into a single buffer."""
        return (
            LENGTH_FIELD.pack(self.length)
            + HEADER.pack(self.id, self.type)
            + self.body
            + TERMINATOR
        )

    @classmethod
    def from_payload(cls, payload: bytes) -> "Packet":
        """
        Build a packet from the bytes following the length field.

        The trailing terminator pair is dropped without inspection; some
        servers put garbage there.
        """
        if len(payload) < MIN_PACKET_LENGTH:
            raise ProtocolViolation(
                "Packet shorter than its header",
                details={"payload_size": len(payload)},
            )
        packet_id, packet_type = HEADER.unpack_from(payload)
        return cls(packet_id, packet_type, payload[HEADER.size:-len(TERMINATOR)])

    @classmethod
    def decode(cls, buffer: bytes) -> Tuple["Packet", bytes]:
        """
        Decode one packet from the front of ``buffer``.

        Returns:
            Tuple of (packet, remaining_bytes)
        """
        if len(buffer) < LENGTH_FIELD.size:
            raise ProtocolViolation("Truncated length field", details={"buffer_size": len(buffer)})
        (length,) = LENGTH_FIELD.unpack_from(buffer)
        check_length(length)
        end = LENGTH_FIELD.size + length
        if len(buffer) < end:
            raise ProtocolViolation(
                "Truncated packet",
                details={"length": length, "buffer_size": len(buffer)},
            )
        return cls.from_payload(buffer[LENGTH_FIELD.size:end]), buffer[end:]


def check_length(length: int, max_length: int = 1024 * 1024) -> None:
    """Reject length fields no well-formed packet can carry."""
    if length < MIN_PACKET_LENGTH or length > max_length:
        raise ProtocolViolation(
            f"Invalid packet length {length}",
            details={"length": length, "max_length": max_length},
        )
