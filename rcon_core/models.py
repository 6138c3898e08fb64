"""
Core data models

The per-game capability table lives here so that protocol deviations between
engines sharing a nominal "same" protocol are kept out of the clients.
"""
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel


class Game(str, Enum):
    """Supported game families"""

    GOLDSRC = "goldsrc"
    SOURCE = "source"
    MINECRAFT = "minecraft"
    FACTORIO = "factorio"


class TransportProtocol(str, Enum):
    """Transport used to reach the server"""

    TCP = "tcp"
    UDP = "udp"


class GameProfile(BaseModel):
    """Protocol quirks of one game family"""

    game: Game
    transport: TransportProtocol
    default_port: Optional[int] = None

    # TCP packet protocol only
    expects_auth_ack: bool = False
    sentinel_type: int = 0
    sentinel_body: bytes = b""

    class Config:
        frozen = True


GAME_PROFILES: Dict[Game, GameProfile] = {
    Game.GOLDSRC: GameProfile(
        game=Game.GOLDSRC,
        transport=TransportProtocol.UDP,
        default_port=27015,
    ),
    # Source sends an empty RESPONSE_VALUE before the auth response
    Game.SOURCE: GameProfile(
        game=Game.SOURCE,
        transport=TransportProtocol.TCP,
        default_port=27015,
        expects_auth_ack=True,
    ),
    Game.MINECRAFT: GameProfile(
        game=Game.MINECRAFT,
        transport=TransportProtocol.TCP,
        default_port=25575,
    ),
    # Factorio never answers type 0 packets, so a harmless command is used
    Game.FACTORIO: GameProfile(
        game=Game.FACTORIO,
        transport=TransportProtocol.TCP,
        default_port=None,
        sentinel_type=2,
        sentinel_body=b"/bogus",
    ),
}


def get_profile(game: Game) -> GameProfile:
    """Look up the capability table row for a game."""
    return GAME_PROFILES[Game(game)]
