"""
RCON command line client

Runs the commands given as arguments, or reads one command per line from
stdin when none are given. Each non-empty response is printed to stdout.
"""
import argparse
import asyncio
import logging
import sys
import threading
from typing import AsyncIterator, List, Optional

import structlog

from rcon_core.config import Settings, settings as default_settings
from rcon_core.engine.client_factory import RconClient, open_client
from rcon_core.exceptions import RconError
from rcon_core.logging import setup_logging
from rcon_core.models import Game

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rcon",
        description="Send console commands to a game server over RCON",
    )
    parser.add_argument(
        "-H",
        "--host",
        default="127.0.0.1",
        help="Server host",
    )
    parser.add_argument(
        "-P",
        "--port",
        type=int,
        help="Server port (defaults to the game's standard RCON port)",
    )
    parser.add_argument(
        "-p",
        "--password",
        required=True,
        help="RCON password",
    )
    parser.add_argument(
        "-g",
        "--game",
        choices=[game.value for game in Game],
        default=Game.SOURCE.value,
        help="Game family, selects the protocol and its quirks",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log protocol traffic to stderr",
    )
    parser.add_argument(
        "commands",
        nargs="*",
        help="Commands to run; read from stdin when omitted",
    )
    return parser


def _pump_stdin(loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Optional[str]]") -> None:
    """Blocking stdin reader, runs on its own thread."""
    for line in sys.stdin:
        asyncio.run_coroutine_threadsafe(queue.put(line.rstrip("\r\n")), loop).result()
    asyncio.run_coroutine_threadsafe(queue.put(None), loop).result()


async def read_interactive(queue_size: int) -> AsyncIterator[str]:
    """Yield stdin lines handed over through a bounded queue."""
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=queue_size)
    reader = threading.Thread(
        target=_pump_stdin,
        args=(asyncio.get_running_loop(), queue),
        name="rcon-stdin",
        daemon=True,
    )
    reader.start()
    while True:
        line = await queue.get()
        if line is None:
            break
        if line.strip():
            yield line


async def read_batch(commands: List[str]) -> AsyncIterator[str]:
    for command in commands:
        yield command


async def execute(client: RconClient, commands: AsyncIterator[str]) -> None:
    """Run commands one at a time, printing non-empty responses."""
    async for command in commands:
        response = await client.send_command(command)
        logger.debug("command_response", command=command, size=len(response))
        if response:
            print(response, flush=True)


async def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    settings = settings or default_settings

    setup_logging("rcon", logging.DEBUG if args.verbose else None, settings)
    logger.debug("arguments", host=args.host, port=args.port, game=args.game, commands=len(args.commands))

    game = Game(args.game)
    try:
        client = await open_client(args.host, args.port, args.password, game, settings)
    except RconError as e:
        logger.error("connect_failed", host=args.host, port=args.port, error=e.message, details=e.details)
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    if args.commands:
        commands = read_batch(args.commands)
    else:
        commands = read_interactive(settings.input_queue_size)

    try:
        await execute(client, commands)
    except RconError as e:
        logger.error("command_failed", error=e.message, details=e.details)
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await client.close()

    return 0


def run() -> None:
    """Console script entry point"""
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    run()
