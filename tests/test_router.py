"""Tests for the call session state machine and keep-alive."""

import asyncio

import pytest

from conftest import STOP_FRAME, FakeRoom, FakeTransport, media_frame, start_frame
from roombridge.core.events import StreamStopped
from roombridge.room import RoomConnector
from roombridge.router import TRANSITIONS, EventRouter
from roombridge.serializers.twilio import TwilioSerializer
from roombridge.session import CallSession, SessionState, SessionStore


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def _connected_session(transport: FakeTransport) -> tuple[CallSession, FakeRoom]:
    room = FakeRoom()
    connector = RoomConnector(lambda: room)
    await connector.connect("wss://rooms.example.test", "token")
    session = CallSession(transport=transport, serializer=TwilioSerializer(), room=connector)
    return session, room


class TestTransitions:

    @pytest.mark.asyncio
    async def test_start_media_stop_sequence(self, transport):
        session, room = await _connected_session(transport)
        router = EventRouter(session)

        await router.handle(start_frame("S1"))
        assert session.state is SessionState.ACTIVE
        await router.handle(media_frame("AAAA"))
        await router.handle(STOP_FRAME)

        assert transport.messages == [
            {"event": "mark", "streamSid": "S1"},
            {"event": "mark", "streamSid": "S1"},
        ]
        assert room.local_participant.published == [(b"\x00\x00\x00", False, "audio")]
        assert room.disconnect_calls == 1
        assert session.state is SessionState.TERMINATED

    @pytest.mark.asyncio
    async def test_start_records_call_metadata(self, transport):
        session, _ = await _connected_session(transport)
        await EventRouter(session).handle(start_frame("S9", "CA9"))
        assert session.session_id == "S9"
        assert session.call_id == "CA9"

    @pytest.mark.asyncio
    async def test_media_before_start_acks_with_empty_sid(self, transport):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        router = EventRouter(session)

        await router.handle(media_frame("AAAA"))

        assert transport.messages == [{"event": "mark", "streamSid": ""}]
        assert session.state is SessionState.UNINITIALIZED
        assert session.media_chunks_in == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("frame", [
        {"event": "media", "media": {}},
        {"event": "media", "media": {"payload": "%%%not-base64"}},
    ])
    async def test_malformed_media_is_acked_without_publish(self, transport, frame):
        session, room = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))
        transport.sent.clear()

        await router.handle(frame)

        assert transport.messages == [{"event": "mark", "streamSid": "S1"}]
        assert room.local_participant.published == []
        assert session.publish_failures == 0
        assert session.state is SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_event_is_ignored(self, transport):
        session, _ = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))
        transport.sent.clear()

        await router.handle({"event": "foo"})
        await router.handle("not json at all")

        assert transport.sent == []
        assert session.state is SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_connected_handshake_is_silent(self, transport):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        await EventRouter(session).handle({"event": "connected", "protocol": "Call"})
        assert transport.sent == []
        assert session.state is SessionState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_failed_publish_still_acks(self, transport):
        session, room = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))
        room.local_participant.fail = True

        await router.handle(media_frame("AAAA"))

        assert transport.messages[-1] == {"event": "mark", "streamSid": "S1"}
        assert session.publish_failures == 1
        assert session.state is SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_duplicate_start_is_ignored(self, transport):
        session, _ = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))
        await router.handle(start_frame("S2"))
        assert session.session_id == "S1"
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_stop_before_start_terminates(self, transport):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        await EventRouter(session).handle(STOP_FRAME)
        assert session.state is SessionState.TERMINATED
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_no_mark_after_termination(self, transport):
        session, _ = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))
        await router.handle(STOP_FRAME)
        sent_before = list(transport.sent)

        await router.handle(media_frame("AAAA"))
        assert await session.send_mark() is False
        assert transport.sent == sent_before

    @pytest.mark.asyncio
    async def test_activation_hook_runs_before_ack(self, transport):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        seen = []

        async def activate(s, event):
            seen.append((event.session_id, len(transport.sent)))

        await EventRouter(session, activate=activate).handle(start_frame("S1"))
        assert seen == [("S1", 0)]
        assert len(transport.sent) == 1

    def test_terminated_state_has_no_transitions(self):
        assert not [key for key in TRANSITIONS if key[0] is SessionState.TERMINATED]


class TestTermination:

    @pytest.mark.asyncio
    async def test_concurrent_stop_and_close_disconnect_once(self, transport):
        session, room = await _connected_session(transport)
        router = EventRouter(session)
        await router.handle(start_frame("S1"))

        await asyncio.gather(
            router.dispatch(StreamStopped()),
            session.terminate("closed"),
            session.terminate("closed"),
        )

        assert room.disconnect_calls == 1
        assert session.state is SessionState.TERMINATED

    @pytest.mark.asyncio
    async def test_terminate_cancels_keepalive(self, transport, gate):
        session, _ = await _connected_session(transport)
        await EventRouter(session).handle(start_frame("S1"))
        timer = session.start_keepalive(0.25, sleep=gate.sleep)

        await session.terminate("closed")
        await _settle()

        assert not timer.running
        gate.tick(3)
        await _settle()
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_terminate_without_room_connection(self, transport):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        await session.terminate("closed")
        await session.terminate("closed")
        assert session.is_terminated
        assert session.ended_at is not None


class TestKeepAlive:

    @pytest.mark.asyncio
    async def test_two_ticks_send_two_marks(self, transport, gate):
        session, _ = await _connected_session(transport)
        await EventRouter(session).handle(start_frame("S1"))
        session.start_keepalive(0.25, sleep=gate.sleep)

        gate.tick(2)
        await _settle()

        assert transport.messages == [{"event": "mark", "streamSid": "S1"}] * 3
        session.keepalive.cancel()
        await _settle()

    @pytest.mark.asyncio
    async def test_tick_skipped_when_socket_closed(self, transport, gate):
        session, _ = await _connected_session(transport)
        await EventRouter(session).handle(start_frame("S1"))
        session.start_keepalive(0.25, sleep=gate.sleep)
        await transport.close()

        gate.tick()
        await _settle()

        assert len(transport.sent) == 1
        session.keepalive.cancel()
        await _settle()

    @pytest.mark.asyncio
    async def test_keepalive_cannot_start_twice(self, transport, gate):
        session = CallSession(transport=transport, serializer=TwilioSerializer())
        session.start_keepalive(0.25, sleep=gate.sleep)
        with pytest.raises(RuntimeError):
            session.start_keepalive(0.25, sleep=gate.sleep)
        session.keepalive.cancel()
        await _settle()


class TestSessionStore:

    def test_create_and_get(self, transport):
        store = SessionStore()
        session = store.create(transport=transport, serializer=TwilioSerializer())
        assert store.get(session.connection_id) is session
        assert session.state is SessionState.UNINITIALIZED

    def test_active_count_and_remove(self, transport):
        store = SessionStore()
        s1 = store.create(transport=transport, serializer=TwilioSerializer())
        store.create(transport=transport, serializer=TwilioSerializer())
        s1.state = SessionState.ACTIVE
        assert store.active_count == 1
        store.remove(s1.connection_id)
        assert store.get(s1.connection_id) is None
        assert store.active_count == 0
        assert len(store.all_sessions) == 1
