#!/usr/bin/env python3
"""Play a full game of plankwalk with random bots over real sockets.

This script spins up the host in-process and connects a handful of bots from
``practice.bots``. Every bot only reacts to the state pushes it receives, so
the run exercises the same path a remote client would.

Example:
    python scripts/table_sim.py --players 4 --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict

import websockets
from websockets.asyncio.client import connect

from host.config import HostConfig
from host.server import HostServer
from practice.bots import choose_action

LOGGER = logging.getLogger("table_sim")


@dataclass
class BotProfile:
    name: str
    rng: random.Random
    # The starter sends "start" once everyone has joined.
    starter: bool = False


def envelope(msg_type: str, **fields: Any) -> str:
    return json.dumps({"type": msg_type, "v": 1, **fields})


async def run_bot(profile: BotProfile, url: str, players: int, stop_event: asyncio.Event) -> None:
    """Connect one bot and answer every state push until the game ends."""

    try:
        async with connect(url) as ws:
            await ws.send(envelope("hello", name=profile.name))
            started = False
            while not stop_event.is_set():
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                except websockets.ConnectionClosed:
                    break

                message: Dict[str, Any] = json.loads(raw)
                msg_type = message.get("type")
                if msg_type == "error":
                    LOGGER.warning("%s received error %s", profile.name, message)
                    continue
                if msg_type != "state":
                    continue

                phase = message.get("turn_phase")
                if phase == "over":
                    winner = message["turn_players"][0] if message["turn_players"] else None
                    LOGGER.info("%s saw the game end; winner=%s", profile.name, winner or "nobody")
                    stop_event.set()
                    break
                if phase == "none":
                    if profile.starter and not started and len(message.get("hands", {})) >= players:
                        started = True
                        await ws.send(envelope("start"))
                    continue

                params = choose_action(message, profile.name, profile.rng)
                if params is not None:
                    await ws.send(envelope("action", params=params))
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Bot %s crashed: %s", profile.name, exc)


async def run_simulation(args: argparse.Namespace) -> None:
    config = HostConfig(host=args.host, port=args.port, idle_timeout_ms=args.idle_timeout, seed=args.seed)
    host = HostServer(config)

    server_task = asyncio.create_task(host.start())
    await asyncio.sleep(0.5)  # give the socket time to bind

    stop_event = asyncio.Event()
    profiles = [
        BotProfile(name=f"Pirate{i}", rng=random.Random(args.seed + i), starter=(i == 0))
        for i in range(args.players)
    ]
    url = f"ws://{args.host}:{args.port}"
    bot_tasks = [asyncio.create_task(run_bot(profile, url, args.players, stop_event)) for profile in profiles]

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=args.timeout)
    except asyncio.TimeoutError:
        LOGGER.warning("Simulation timed out; stopping bots")
    finally:
        stop_event.set()
        for task in bot_tasks:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*bot_tasks, return_exceptions=True)
        server_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server_task


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a local plankwalk game with random bots")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9001)
    parser.add_argument("--players", type=int, default=4)
    parser.add_argument("--idle-timeout", type=int, default=5_000)
    parser.add_argument("--timeout", type=float, default=60.0, help="max seconds to run before stopping")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        asyncio.run(run_simulation(args))
    except KeyboardInterrupt:
        LOGGER.info("Simulation interrupted; shutting down")


if __name__ == "__main__":
    main()
