#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import websockets
from websockets.asyncio.client import ClientConnection, connect

from practice.bots import owes_move

logging.basicConfig(level=logging.INFO)

# ManualClient mirrors what a bot does but with terminal prompts.

_HELP = """Commands (indices count from 0, the anchor is 0):
  shoot <name>        call a shoot on another player
  toss <i>            call a toss, or toss a card when asked to
  hands <i>           call hands, or flip a card when asked to
  fight               call a fight
  lose <i>            give up a life
  replace <i> [<i>..] replace cards (no indices to keep everything)
  state               ask the host for a fresh state
  leave               leave the game"""


class ManualClient:
    def __init__(self, name: str, url: str, token: Optional[str] = None) -> None:
        self.name = name
        self.url = url
        self.token = token
        self.websocket: Optional[ClientConnection] = None
        self.state: Optional[Dict[str, Any]] = None

    async def run(self) -> None:
        async with connect(self.url) as ws:
            self.websocket = ws
            hello: Dict[str, Any] = {"type": "hello", "v": 1}
            if self.token:
                hello["token"] = self.token
            else:
                hello["name"] = self.name
            await self._send(hello)
            try:
                await self._loop()
            except websockets.ConnectionClosed as exc:
                print(f"Connection closed: {exc.rcvd.reason if exc.rcvd else 'no reason'}")

    async def _loop(self) -> None:
        assert self.websocket is not None
        while True:
            raw = await self.websocket.recv()
            msg = json.loads(raw)
            self._print_message(msg)
            if msg.get("type") != "state":
                continue
            self.state = msg
            phase = msg.get("turn_phase")
            if phase == "over":
                print("Game over. Press Ctrl+C to exit.")
                break
            if phase == "none":
                await self._lobby_prompt()
            elif owes_move(msg, self.name):
                await self._move_prompt()

    async def _lobby_prompt(self) -> None:
        choice = (await asyncio.to_thread(input, "Lobby: [s]tart, [l]eave or enter to wait: ")).strip().lower()
        if choice == "s":
            await self._send({"type": "start", "v": 1})
        elif choice == "l":
            await self._send({"type": "leave", "v": 1})

    async def _move_prompt(self) -> None:
        while True:
            line = await asyncio.to_thread(input, f"Your move ({self.state['turn_phase']}, h=help): ")
            message = self._parse_command(line.strip())
            if message is not None:
                await self._send(message)
                return

    def _parse_command(self, line: str) -> Optional[Dict[str, Any]]:
        words = line.split()
        if not words or words[0] in {"h", "help"}:
            print(_HELP)
            return None
        verb, args = words[0].lower(), words[1:]
        phase = self.state["turn_phase"] if self.state else "none"
        if verb == "state":
            return {"type": "state", "v": 1}
        if verb == "leave":
            return {"type": "leave", "v": 1}
        if verb == "fight":
            return self._action({"action": "call_fight"})
        if verb == "shoot" and len(args) == 1:
            return self._action({"action": "call_shoot", "target": args[0]})

        indices = self._read_indices(args)
        if indices is None:
            print("Indices must be integers")
            return None
        if verb == "replace":
            return self._action({"action": "continue_replace", "indices": indices})
        if len(indices) != 1:
            print("Give exactly one index")
            return None
        if verb == "toss":
            name = "continue_toss" if phase == "toss" else "call_toss"
        elif verb == "hands":
            name = "continue_hands" if phase == "hands" else "call_hands"
        elif verb == "lose":
            name = "lose_life"
        else:
            print("Unknown command. Try 'h'.")
            return None
        return self._action({"action": name, "index": indices[0]})

    @staticmethod
    def _read_indices(args: List[str]) -> Optional[List[int]]:
        try:
            return [int(arg) for arg in args]
        except ValueError:
            return None

    @staticmethod
    def _action(params: Dict[str, Any]) -> Dict[str, Any]:
        return {"type": "action", "v": 1, "params": params}

    def _print_message(self, msg: Dict[str, Any]) -> None:
        msg_type = msg.get("type", "?")
        print(f"\n>>> {str(msg_type).upper()}")
        if msg_type == "welcome":
            self.token = msg.get("token")
            print(f"Joined as {msg.get('name')}; resume later with --token {self.token}")
        elif msg_type == "state":
            self._render_state(msg)
        elif msg_type == "error":
            print(f"Error {msg.get('code')}: {msg.get('msg')}")
        else:
            print(json.dumps(msg, indent=2))

    def _render_state(self, msg: Dict[str, Any]) -> None:
        order = msg.get("player_order", [])
        active = msg.get("active_player")
        active_name = order[active] if active is not None and order else "-"
        print(f"Phase {msg.get('turn_phase')} | Active {active_name} | Deck {msg.get('deck_size')}")
        print(f"Discard: {' '.join(msg.get('discard', [])) or '--'}")
        if msg.get("turn_players"):
            print(f"Waiting on: {', '.join(msg['turn_players'])}")
        if msg.get("replace_hearts"):
            print(f"Owe a heart: {', '.join(msg['replace_hearts'])}")
        for player, slots in msg.get("hands", {}).items():
            cards = " ".join(self._slot_label(slot) for slot in slots)
            marker = "*" if player == self.name else " "
            print(f" {marker} {player:<12} {cards}")

    @staticmethod
    def _slot_label(slot: Dict[str, Any]) -> str:
        label = slot.get("card")
        if label is None:
            return "[??]"
        return f"[{label}]" if slot.get("visible") else f"({label})"

    async def _send(self, payload: Dict[str, Any]) -> None:
        assert self.websocket is not None
        await self.websocket.send(json.dumps(payload))


def main() -> None:
    parser = argparse.ArgumentParser(description="Play plankwalk from the terminal")
    parser.add_argument("--url", default="ws://127.0.0.1:8000")
    parser.add_argument("--name", required=True)
    parser.add_argument("--token", default=None, help="Resume an earlier session")
    args = parser.parse_args()

    client = ManualClient(args.name, args.url, token=args.token)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print("Bye")


if __name__ == "__main__":
    main()
