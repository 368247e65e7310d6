import asyncio
import json

import websockets

from host.config import HostConfig
from host.server import HostServer
from rules.models import TurnPhase


# Fake sockets so we can exercise async paths without opening real connections.
class DummyWebSocket:
    def __init__(self, incoming=()) -> None:
        self.incoming: list[str] = [json.dumps(message) for message in incoming]
        self.sent: list[str] = []
        self.closed = False
        self.close_code = None

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        if not self.incoming:
            raise websockets.ConnectionClosed(None, None)
        return self.incoming.pop(0)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while self.incoming:
            yield self.incoming.pop(0)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    def messages(self, msg_type=None) -> list[dict]:
        decoded = [json.loads(raw) for raw in self.sent]
        return [msg for msg in decoded if msg_type is None or msg["type"] == msg_type]


def make_server(**overrides) -> HostServer:
    overrides.setdefault("idle_timeout_ms", 0)
    overrides.setdefault("seed", 5)
    return HostServer(HostConfig(**overrides))


async def join_players(server: HostServer, names):
    sessions, sockets = [], []
    for name in names:
        socket = DummyWebSocket()
        session = await server._join(socket, name)
        assert session is not None
        sessions.append(session)
        sockets.append(socket)
    return sessions, sockets


def test_join_sends_welcome_and_redacted_state():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])

        welcome = sockets[0].messages("welcome")[0]
        assert welcome["name"] == "Anne"
        assert welcome["token"] == sessions[0].token
        assert welcome["v"] == 1
        assert "ts" in welcome

        state = sockets[0].messages("state")[-1]
        assert set(state["hands"]) == {"Anne", "Bonny"}
        assert all("card" in slot for slot in state["hands"]["Anne"])
        assert all("card" not in slot for slot in state["hands"]["Bonny"])

    asyncio.run(scenario())


def test_join_rejections_use_engine_codes():
    async def scenario():
        server = make_server()
        await join_players(server, ["Anne"])
        duplicate = DummyWebSocket()
        assert await server._join(duplicate, "Anne") is None
        error = duplicate.messages("error")[-1]
        assert error["code"] == "DUPLICATE_NAME"
        assert error["category"] == "lifecycle"

        nameless = DummyWebSocket()
        assert await server._join(nameless, None) is None
        assert nameless.messages("error")[-1]["code"] == "BAD_SCHEMA"

    asyncio.run(scenario())


def test_handle_connection_requires_hello():
    async def scenario():
        server = make_server()
        socket = DummyWebSocket([{"type": "start"}])
        await server._handle_connection(socket)
        assert socket.messages("error")[-1]["code"] == "BAD_HELLO"
        assert socket.closed

    asyncio.run(scenario())


def test_handle_connection_runs_a_session_until_the_socket_closes():
    async def scenario():
        server = make_server()
        await join_players(server, ["Anne"])
        socket = DummyWebSocket([{"type": "hello", "name": "Bonny"}, {"type": "start"}, {"type": "bogus"}])
        await server._handle_connection(socket)

        assert server.game.phase == TurnPhase.ACTION
        assert socket.messages("error")[-1]["code"] == "UNKNOWN_TYPE"
        session = next(s for s in server.sessions.values() if s.name == "Bonny")
        assert session.websocket is None

    asyncio.run(scenario())


def test_action_out_of_turn_is_rejected():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])
        await server._dispatch(sessions[0], {"type": "start"})

        active = server.game.active_player()
        idle = 1 if active == "Anne" else 0
        target = sessions[1 - idle].name
        await server._dispatch(sessions[idle], {"type": "action", "params": {"action": "call_shoot", "target": target}})

        error = sockets[idle].messages("error")[-1]
        assert error["code"] == "OUT_OF_TURN"
        assert error["category"] == "turn"
        assert server.game.phase == TurnPhase.ACTION

    asyncio.run(scenario())


def test_bad_params_never_reach_the_engine():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])
        await server._dispatch(sessions[0], {"type": "start"})
        revision = server.revision

        await server._dispatch(sessions[0], {"type": "action", "params": {"action": "call_toss", "index": "x"}})
        assert sockets[0].messages("error")[-1]["code"] == "BAD_PARAMS"
        assert server.revision == revision

    asyncio.run(scenario())


def test_successful_action_pushes_state_to_everyone():
    async def scenario():
        server = make_server()
        spectator = DummyWebSocket()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])
        server.spectators.add(spectator)
        await server._dispatch(sessions[0], {"type": "start"})

        active = server.game.active_player()
        shooter = next(s for s in sessions if s.name == active)
        target = next(s for s in sessions if s.name != active)
        before = [len(socket.sent) for socket in sockets]
        await server._dispatch(shooter, {"type": "action", "params": {"action": "call_shoot", "target": target.name}})

        assert [len(socket.sent) for socket in sockets] == [count + 1 for count in before]
        public = spectator.messages("state")[-1]
        assert public["viewer"] == ""
        # The target was shot, so their hand is on show for everyone.
        assert all("card" in slot for slot in public["hands"][target.name])

    asyncio.run(scenario())


def test_resume_with_token_rebinds_socket():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])

        fresh = DummyWebSocket()
        session = await server._resume(fresh, sessions[0].token)
        assert session is sessions[0]
        assert session.websocket is fresh
        assert sockets[0].closed and sockets[0].close_code == 4000
        assert fresh.messages("state")[-1]["viewer"] == "Anne"

        stranger = DummyWebSocket()
        assert await server._resume(stranger, "nope") is None
        assert stranger.messages("error")[-1]["code"] == "UNKNOWN_TOKEN"

    asyncio.run(scenario())


def test_leave_removes_player_and_closes_socket():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny", "Calico"])
        await server._dispatch(sessions[2], {"type": "leave"})

        assert "Calico" not in server.game.hands
        assert sessions[2].token not in server.sessions
        assert sockets[2].closed

    asyncio.run(scenario())


def test_join_after_game_over_starts_a_fresh_table():
    async def scenario():
        server = make_server()
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])
        await server._dispatch(sessions[0], {"type": "start"})
        await server._dispatch(sessions[1], {"type": "leave"})
        assert server.game.phase == TurnPhase.OVER

        newcomer = DummyWebSocket()
        session = await server._join(newcomer, "Mary")
        assert session is not None
        assert list(server.game.hands) == ["Mary"]
        assert list(server.sessions) == [session.token]
        assert sockets[0].closed and sockets[0].close_code == 4001

    asyncio.run(scenario())


def test_idle_player_is_removed():
    async def scenario():
        server = make_server(idle_timeout_ms=20)
        sessions, sockets = await join_players(server, ["Anne", "Bonny"])
        await server._dispatch(sessions[0], {"type": "start"})
        idle_name = server.game.active_player()
        assert server.pending_move is not None
        assert server.pending_move.player == idle_name

        await asyncio.sleep(0.2)

        assert idle_name not in server.game.hands
        assert server.game.phase == TurnPhase.OVER
        idle_socket = sockets[0] if idle_name == "Anne" else sockets[1]
        assert idle_socket.closed and idle_socket.close_code == 4002

    asyncio.run(scenario())


def test_idle_timer_resets_after_a_move():
    async def scenario():
        server = make_server(idle_timeout_ms=10_000)
        sessions, _ = await join_players(server, ["Anne", "Bonny", "Calico"])
        await server._dispatch(sessions[0], {"type": "start"})
        first = server.pending_move
        assert first is not None

        active = server.game.active_player()
        shooter = next(s for s in sessions if s.name == active)
        target = next(s for s in sessions if s.name != active)
        await server._dispatch(shooter, {"type": "action", "params": {"action": "call_shoot", "target": target.name}})

        assert server.pending_move is not first
        await asyncio.sleep(0)
        assert first.timer_task.cancelled()

    asyncio.run(scenario())


def test_spectator_receives_public_state_and_cannot_act():
    async def scenario():
        server = make_server()
        await join_players(server, ["Anne", "Bonny"])
        spectator = DummyWebSocket([{"type": "action", "params": {"action": "call_fight"}}])
        await server._handle_spectator_session(spectator)

        state = spectator.messages("state")[0]
        assert all("card" not in slot for slot in state["hands"]["Anne"])
        assert spectator.closed and spectator.close_code == 4403
        assert spectator not in server.spectators

    asyncio.run(scenario())


def test_token_collisions_are_rerolled(monkeypatch):
    tokens = iter(["aa", "aa", "bb"])
    monkeypatch.setattr("host.server.secrets.token_hex", lambda nbytes: next(tokens))

    async def scenario():
        server = make_server()
        sessions, _ = await join_players(server, ["Anne", "Bonny"])
        assert [session.token for session in sessions] == ["aa", "bb"]

    asyncio.run(scenario())


def test_stale_idle_timer_does_nothing(monkeypatch):
    async def scenario():
        server = make_server(idle_timeout_ms=10_000)
        sessions, _ = await join_players(server, ["Anne", "Bonny"])
        await server._dispatch(sessions[0], {"type": "start"})
        move = server.pending_move
        server.revision += 1

        published = []

        async def capture():
            published.append(True)

        monkeypatch.setattr(server, "_publish_state", capture)
        await server._idle_expired(move, 0)

        assert len(server.game.hands) == 2
        assert published == []

    asyncio.run(scenario())
