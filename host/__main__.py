import argparse
import asyncio
import logging

from .config import HostConfig
from .server import HostServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Plankwalk host server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--idle-timeout",
        type=int,
        default=120_000,
        help="Remove a player who owes a move for this many milliseconds (0 disables)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed the shuffles for a reproducible table")
    args = parser.parse_args()

    config = HostConfig(
        host=args.host,
        port=args.port,
        idle_timeout_ms=args.idle_timeout,
        seed=args.seed,
    )

    server = HostServer(config)
    asyncio.run(server.start())


if __name__ == "__main__":
    main()
