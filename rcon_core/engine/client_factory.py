"""
Client Factory

Picks the transport and client matching a game's profile, connects and
authenticates it.
"""
from typing import Optional, Union

import structlog

from rcon_core.config import Settings, settings as default_settings
from rcon_core.engine.goldsrc_client import UdpChallengeClient
from rcon_core.engine.source_client import TcpPacketClient
from rcon_core.engine.transport import DatagramTransport, StreamTransport
from rcon_core.exceptions import ConfigurationError, RconError
from rcon_core.models import Game, TransportProtocol, get_profile

logger = structlog.get_logger()

RconClient = Union[TcpPacketClient, UdpChallengeClient]


def resolve_port(game: Game, port: Optional[int] = None) -> int:
    """Return the explicit port, or the game's standard one."""
    if port is not None:
        return port
    default_port = get_profile(game).default_port
    if default_port is None:
        raise ConfigurationError(
            f"No default port for {Game(game).value}, a port must be given",
            details={"game": Game(game).value},
        )
    return default_port


def create_client(
    host: str,
    port: int,
    game: Game,
    password: str = "",
    settings: Optional[Settings] = None,
) -> RconClient:
    """Build an unconnected client for the game."""
    settings = settings or default_settings
    profile = get_profile(game)
    if profile.transport == TransportProtocol.UDP:
        return UdpChallengeClient(DatagramTransport(host, port, settings), password, settings)
    return TcpPacketClient(StreamTransport(host, port, settings), profile.game, settings)


async def open_client(
    host: str,
    port: Optional[int],
    password: str,
    game: Game = Game.SOURCE,
    settings: Optional[Settings] = None,
) -> RconClient:
    """
    Connect and authenticate a client.

    Args:
        host: Server hostname or IP
        port: Server port, or None for the game's default
        password: RCON password
        game: Game family selecting protocol and quirks
        settings: Optional settings override

    Returns:
        A ready client; the caller owns it and must close it.

    Raises:
        ConfigurationError: No port given and the game has no default
        RconError: Connecting or authenticating failed
    """
    port = resolve_port(game, port)
    client = create_client(host, port, game, password, settings)
    await client.connect()
    try:
        await client.authenticate(password)
    except RconError:
        await client.close()
        raise
    logger.debug("client_ready", host=host, port=port, game=Game(game).value)
    return client
