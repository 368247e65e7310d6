from __future__ import annotations

import asyncio
import json
import logging
import random
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

import websockets
from websockets.asyncio.server import ServerConnection, serve

from rules.actions import describe, parse_action
from rules.game import GameState, new_game
from rules.models import Rejection, TurnPhase

from .config import HostConfig

LOGGER = logging.getLogger("plankwalk_host")

# HostServer glues the rules engine to WebSocket clients. Identity (join
# tokens), transport and idle eviction live here; GameState stays pure.

# Empty names can never join, so this viewer only ever gets the public view.
SPECTATOR_VIEW = ""


@dataclass
class ClientSession:
    token: str
    name: str
    websocket: Optional[ServerConnection]


@dataclass
class PendingMove:
    player: str
    revision: int
    deadline: float
    timer_task: Optional[asyncio.Task] = None


class HostServer:
    def __init__(self, config: HostConfig) -> None:
        self.config = config
        self.rng = random.Random(config.seed)
        self.game: GameState = new_game(rng=self.rng)
        self.sessions: Dict[str, ClientSession] = {}
        self.spectators: Set[ServerConnection] = set()
        self.pending_move: Optional[PendingMove] = None
        # Bumped on every successful mutation so stale idle timers can tell.
        self.revision = 0
        # Every game mutation and every state read happens under this lock.
        self.lock = asyncio.Lock()

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        host = host if host is not None else self.config.host
        port = port if port is not None else self.config.port
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Host server listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        # First message must be "hello" so we know who we are talking to.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        if hello.get("role") == "spectator":
            await self._handle_spectator_session(websocket)
            return

        token = hello.get("token")
        if isinstance(token, str) and token:
            session = await self._resume(websocket, token)
        else:
            session = await self._join(websocket, hello.get("name"))
        if session is None:
            await websocket.close()
            return

        try:
            async for raw in websocket:
                await self._dispatch(session, self._decode(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            if session.websocket is websocket:
                session.websocket = None
        LOGGER.info("%s disconnected", session.name)

    async def _handle_spectator_session(self, websocket: ServerConnection) -> None:
        LOGGER.info("Spectator connected")
        async with self.lock:
            self.spectators.add(websocket)
            payload = self.game.get_state(SPECTATOR_VIEW).to_payload()
        await self._send_json(websocket, "state", payload)
        try:
            async for raw in websocket:
                message = self._decode(raw)
                if message.get("type") == "state":
                    async with self.lock:
                        payload = self.game.get_state(SPECTATOR_VIEW).to_payload()
                    await self._send_json(websocket, "state", payload)
                    continue
                LOGGER.warning("Spectator sent unsupported message; closing connection")
                await websocket.close(code=4403, reason="Spectators are read-only")
                break
        except websockets.ConnectionClosed:
            pass
        finally:
            async with self.lock:
                self.spectators.discard(websocket)
            LOGGER.info("Spectator disconnected")

    async def _join(self, websocket: ServerConnection, name_raw: object) -> Optional[ClientSession]:
        if not isinstance(name_raw, str):
            await self._send_error(websocket, code="BAD_SCHEMA", msg="name required")
            return None
        name = name_raw.strip()

        stale: List[ServerConnection] = []
        session: Optional[ClientSession] = None
        async with self.lock:
            if self.game.phase == TurnPhase.OVER:
                stale = self._reset_game_locked()
            rejection = self.game.add_player(name)
            if rejection is None:
                session = ClientSession(token=self._new_token_locked(), name=name, websocket=websocket)
                self.sessions[session.token] = session
                self.revision += 1

        for socket in stale:
            await self._close_quietly(socket, code=4001, reason="Game over")
        if rejection is not None:
            LOGGER.warning("Join rejected name=%r reason=%s", name, rejection.reason)
            await self._send_rejection(websocket, rejection)
            return None

        assert session is not None
        LOGGER.info("%s joined (players=%s)", name, len(self.game.hands))
        await self._send_json(websocket, "welcome", {"token": session.token, "name": name})
        await self._publish_state()
        return session

    async def _resume(self, websocket: ServerConnection, token: str) -> Optional[ClientSession]:
        async with self.lock:
            session = self.sessions.get(token)
            previous = session.websocket if session else None
            if session:
                session.websocket = websocket
                payload = self.game.get_state(session.name).to_payload()
        if session is None:
            await self._send_error(websocket, code="UNKNOWN_TOKEN", msg="Session not found")
            return None
        if previous is not None and previous is not websocket:
            await self._close_quietly(previous, code=4000, reason="Replaced by new connection")
        LOGGER.info("%s reconnected", session.name)
        await self._send_json(websocket, "welcome", {"token": token, "name": session.name})
        await self._send_json(websocket, "state", payload)
        return session

    async def _dispatch(self, session: ClientSession, message: Dict[str, object]) -> None:
        websocket = session.websocket
        if websocket is None:
            return
        if self.sessions.get(session.token) is not session:
            await self._send_error(websocket, code="UNKNOWN_TOKEN", msg="Session no longer active")
            return

        msg_type = message.get("type")
        if msg_type == "state":
            async with self.lock:
                payload = self.game.get_state(session.name).to_payload()
            await self._send_json(websocket, "state", payload)
        elif msg_type == "start":
            if await self._apply(websocket, session.name, "start", lambda: self.game.start_game()):
                LOGGER.info("Game started by %s with %s players", session.name, len(self.game.player_order))
        elif msg_type == "leave":
            await self._handle_leave(session)
        elif msg_type == "action":
            await self._handle_action(session, message)
        else:
            await self._send_error(websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        assert session.websocket is not None
        params = parse_action(message.get("params"))
        if isinstance(params, Rejection):
            await self._send_rejection(session.websocket, params)
            return
        label = describe(params)
        await self._apply(session.websocket, session.name, label, lambda: self.game.do_action(session.name, params))

    async def _handle_leave(self, session: ClientSession) -> None:
        websocket = session.websocket
        assert websocket is not None
        if not await self._apply(websocket, session.name, "leave", lambda: self.game.remove_player(session.name)):
            return
        self.sessions.pop(session.token, None)
        session.websocket = None
        LOGGER.info("%s left the game", session.name)
        await self._close_quietly(websocket, code=1000, reason="Left the game")

    async def _apply(
        self,
        websocket: ServerConnection,
        player: str,
        label: str,
        mutation: Callable[[], Optional[Rejection]],
    ) -> bool:
        async with self.lock:
            rejection = mutation()
            if rejection is None:
                self._after_mutation_locked()
        if rejection is not None:
            LOGGER.warning("Rejected %s from %s reason=%s", label, player, rejection.reason)
            await self._send_rejection(websocket, rejection)
            return False
        LOGGER.debug("Applied %s from %s; phase=%s", label, player, self.game.phase.value)
        await self._publish_state()
        return True

    def _after_mutation_locked(self) -> None:
        self.revision += 1
        self._arm_idle_timer_locked()

    def _reset_game_locked(self) -> List[ServerConnection]:
        LOGGER.info("Previous game is over; starting a fresh table")
        stale = [session.websocket for session in self.sessions.values() if session.websocket is not None]
        self.game = new_game(rng=self.rng)
        self.sessions.clear()
        self._cancel_idle_timer_locked()
        return stale

    def _new_token_locked(self) -> str:
        token = secrets.token_hex(16)
        while token in self.sessions:
            token = secrets.token_hex(16)
        return token

    # Idle eviction ---------------------------------------------------

    def _arm_idle_timer_locked(self) -> None:
        self._cancel_idle_timer_locked()
        if self.config.idle_timeout_ms <= 0:
            return
        waiting = self.game.awaiting()
        if waiting is None:
            return
        delay = self.config.idle_timeout_ms / 1000
        move = PendingMove(player=waiting, revision=self.revision, deadline=time.monotonic() + delay)
        move.timer_task = asyncio.create_task(self._idle_expired(move, delay))
        self.pending_move = move

    def _cancel_idle_timer_locked(self) -> None:
        if self.pending_move and self.pending_move.timer_task:
            self.pending_move.timer_task.cancel()
        self.pending_move = None

    async def _idle_expired(self, move: PendingMove, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self.lock:
            if self.pending_move is not move or self.revision != move.revision:
                return
            self.pending_move = None
            rejection = self.game.remove_player(move.player)
            if rejection is not None:
                return
            dropped = self._forget_player_locked(move.player)
            self._after_mutation_locked()
        LOGGER.info("Removed %s after %sms without a move", move.player, self.config.idle_timeout_ms)
        for socket in dropped:
            await self._close_quietly(socket, code=4002, reason="Removed for inactivity")
        await self._publish_state()

    def _forget_player_locked(self, name: str) -> List[ServerConnection]:
        dropped: List[ServerConnection] = []
        for token, session in list(self.sessions.items()):
            if session.name != name:
                continue
            self.sessions.pop(token)
            if session.websocket is not None:
                dropped.append(session.websocket)
        return dropped

    # Messaging -------------------------------------------------------

    async def _publish_state(self) -> None:
        async with self.lock:
            targets: List[Tuple[ServerConnection, Dict[str, object]]] = [
                (session.websocket, self.game.get_state(session.name).to_payload())
                for session in self.sessions.values()
                if session.websocket is not None
            ]
            if self.spectators:
                public = self.game.get_state(SPECTATOR_VIEW).to_payload()
                targets.extend((socket, public) for socket in self.spectators)
        if not targets:
            return
        await asyncio.gather(
            *(socket.send(self._envelope("state", payload)) for socket, payload in targets),
            return_exceptions=True,
        )

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    async def _send_rejection(self, websocket: ServerConnection, rejection: Rejection) -> None:
        await self._send_json(websocket, "error", rejection.payload())

    async def _close_quietly(self, websocket: ServerConnection, code: int, reason: str) -> None:
        try:
            await websocket.close(code=code, reason=reason)
        except websockets.ConnectionClosed:
            pass

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=self.config.hello_timeout_s)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: object) -> Dict[str, object]:
        try:
            message = json.loads(raw)  # type: ignore[arg-type]
        except (TypeError, json.JSONDecodeError):
            return {}
        return message if isinstance(message, dict) else {}
