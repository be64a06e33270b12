"""Tests for the SSE event envelope, connection registry and broadcast composer."""

import json
from unittest.mock import patch

import pytest

from teambeat.db.repositories import CardRepository, VoteRepository
from teambeat.realtime.broadcast import Broadcaster
from teambeat.realtime.events import HEARTBEAT_FRAME, BoardEvent, encode_named_event
from teambeat.realtime.manager import SSEManager
from teambeat.scene_flags import SceneFlag, SceneMode
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore


class Stream:
    """Collects the frames written to one client."""

    def __init__(self):
        self.frames = []
        self.closed = False

    def write(self, frame: str) -> None:
        if self.closed:
            raise ConnectionError("stream closed")
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True

    def events(self):
        return [
            json.loads(frame[len("data: ") :])
            for frame in self.frames
            if frame.startswith("data: ")
        ]

    def event_types(self):
        return [event["type"] for event in self.events()]


def connect(manager, client_id, user_id=None, board_id=None) -> Stream:
    stream = Stream()
    manager.add_client(client_id, stream.write, user_id, board_id, close=stream.close)
    return stream


class TestBoardEvent:
    def test_encode_frame(self):
        frame = BoardEvent("card_deleted", "b1", {"card_id": "c1"}, timestamp=123).encode()
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: ") :]) == {
            "type": "card_deleted",
            "board_id": "b1",
            "timestamp": 123,
            "card_id": "c1",
        }

    def test_payload_cannot_override_envelope(self):
        with pytest.raises(ValueError):
            BoardEvent("card_deleted", "b1", {"type": "other"})

    def test_named_event(self):
        frame = encode_named_event("connected", {"client_id": "x"})
        assert frame == 'event: connected\ndata: {"client_id": "x"}\n\n'


class TestSSEManager:
    """Tests for the client registry."""

    def test_broadcast_reaches_board_clients_only(self, clock):
        manager = SSEManager(clock=clock)
        on_board = connect(manager, "c1", "u1", "b1")
        elsewhere = connect(manager, "c2", "u2", "b2")

        assert manager.broadcast_to_board("b1", BoardEvent("ping", "b1")) == 1
        assert on_board.event_types() == ["ping"]
        assert elsewhere.frames == []

    def test_exclude_user(self, clock):
        manager = SSEManager(clock=clock)
        actor = connect(manager, "c1", "u1", "b1")
        other = connect(manager, "c2", "u2", "b1")

        manager.broadcast_to_board("b1", BoardEvent("x", "b1"), exclude_user_id="u1")
        assert actor.frames == []
        assert len(other.frames) == 1

    def test_broadcast_to_user_reaches_every_tab(self, clock):
        manager = SSEManager(clock=clock)
        tab1 = connect(manager, "c1", "u1", "b1")
        tab2 = connect(manager, "c2", "u1", "b1")
        other = connect(manager, "c3", "u2", "b1")

        assert manager.broadcast_to_user("b1", "u1", BoardEvent("x", "b1")) == 2
        assert len(tab1.frames) == len(tab2.frames) == 1
        assert other.frames == []

    def test_failed_write_drops_client(self, clock):
        manager = SSEManager(clock=clock)
        stream = connect(manager, "c1", "u1", "b1")
        stream.closed = True

        assert manager.broadcast_to_board("b1", BoardEvent("x", "b1")) == 0
        assert manager.get_client("c1") is None

    def test_switch_and_leave_board(self, clock):
        manager = SSEManager(clock=clock)
        connect(manager, "c1", "u1", "b1")

        manager.update_client_board("c1", "b2")
        assert manager.get_board_clients("b1") == []
        assert [c.client_id for c in manager.get_board_clients("b2")] == ["c1"]

        assert manager.leave_board("c1") == "b2"
        assert manager.get_client("c1").board_id is None

    def test_connected_users(self, clock):
        manager = SSEManager(clock=clock)
        connect(manager, "c1", "u1", "b1")
        connect(manager, "c2", None, "b1")
        assert manager.get_connected_users("b1") == [{"user_id": "u1", "client_id": "c1"}]
        assert manager.get_active_user_count("b1") == 1

    def test_heartbeats_and_stale_cleanup(self, clock):
        manager = SSEManager(stale_timeout_seconds=300, clock=clock)
        quiet = connect(manager, "c1", "u1", "b1")
        clock.advance(200)
        active = connect(manager, "c2", "u2", "b1")
        clock.advance(150)

        assert manager.cleanup_stale_connections() == 1
        assert quiet.closed
        assert manager.send_heartbeats() == 1
        assert active.frames == [HEARTBEAT_FRAME]

    def test_presence_pings_are_rate_limited(self, clock):
        presence = PresenceStore(timeout_seconds=30, clock=clock)
        manager = SSEManager(ping_interval_seconds=20, clock=clock)
        stream = connect(manager, "c1", "u1", "b1")
        presence.update("u1", "b1")
        clock.advance(25)

        assert manager.send_presence_pings(presence) == 1
        assert manager.send_presence_pings(presence) == 0
        assert stream.event_types() == ["presence_ping"]

    def test_close_all(self, clock):
        manager = SSEManager(clock=clock)
        first = connect(manager, "c1", "u1", "b1")
        second = connect(manager, "c2", "u2")
        assert manager.close_all() == 2
        assert first.closed and second.closed
        assert manager.client_count() == 0


@pytest.fixture
def manager():
    return SSEManager()


@pytest.fixture
def broadcaster(manager):
    return Broadcaster(manager, PresenceStore(), NotesLockStore())


@pytest.fixture
def card(db_session, sample_user, sample_columns):
    created = CardRepository(db_session).create_card(
        sample_columns[0].id, sample_user.id, "Too many meetings"
    )
    db_session.commit()
    return created


class TestVoteBroadcasts:
    """Tests for who hears about vote changes."""

    def test_blind_vote_goes_only_to_voter(
        self, db_session, manager, broadcaster, sample_board, make_scene, card,
        sample_user, sample_member,
    ):
        scene = make_scene("Blind", "columns", flags=[SceneFlag.ALLOW_VOTING], current=True)
        voter = connect(manager, "c1", sample_member.id, sample_board.id)
        other = connect(manager, "c2", sample_user.id, sample_board.id)
        VoteRepository(db_session).cast_vote(card.id, sample_member.id, 1)

        broadcaster.vote_changed(db_session, sample_board, scene, card.id, None, sample_member.id)
        broadcaster.vote_updates_for_scene(
            db_session, sample_board, scene, triggering_user_id=sample_member.id
        )

        [event] = [e for e in voter.events() if e["type"] == "vote_changed"]
        assert event["user_voting_data"] == {"votes_by_card": {card.id: 1}}
        assert "vote_changed" not in other.event_types()
        assert other.event_types() == ["voting_stats_updated"]
        assert "voting_stats_updated" not in voter.event_types()

    def test_revealed_vote_goes_to_everyone(
        self, db_session, manager, broadcaster, sample_board, sample_scene, card,
        sample_user, sample_member,
    ):
        first = connect(manager, "c1", sample_member.id, sample_board.id)
        second = connect(manager, "c2", sample_user.id, sample_board.id)
        VoteRepository(db_session).cast_vote(card.id, sample_member.id, 1)

        broadcaster.vote_changed(db_session, sample_board, sample_scene, card.id, 1, sample_member.id)
        broadcaster.vote_updates_for_scene(
            db_session, sample_board, sample_scene, triggering_user_id=sample_member.id
        )

        for stream in (first, second):
            assert stream.event_types() == ["vote_changed", "all_votes_updated"]
            assert stream.events()[1]["all_votes_by_card"] == {card.id: 1}

    def test_no_audience_sends_nothing(
        self, db_session, manager, broadcaster, sample_board, make_scene, card, sample_user
    ):
        static = make_scene("Intro", SceneMode.STATIC.value, current=True)
        stream = connect(manager, "c1", sample_user.id, sample_board.id)
        assert broadcaster.vote_changed(db_session, sample_board, static, card.id, 0, sample_user.id) == 0
        assert stream.frames == []

    def test_revealing_scene_sends_all_votes(
        self, db_session, manager, broadcaster, sample_board, make_scene, card,
        sample_user, sample_member,
    ):
        VoteRepository(db_session).cast_vote(card.id, sample_member.id, 1)
        review = make_scene("Review", SceneMode.REVIEW.value, current=True)
        streams = [
            connect(manager, "c1", sample_member.id, sample_board.id),
            connect(manager, "c2", sample_user.id, sample_board.id),
        ]

        broadcaster.scene_changed(db_session, sample_board, review, {"id": review.id})
        broadcaster.vote_updates_for_scene(db_session, sample_board, review)

        for stream in streams:
            assert stream.event_types() == ["scene_changed", "all_votes_updated"]
            assert stream.events()[0]["all_cards"][0]["vote_count"] == 1


class TestSceneBroadcasts:
    def test_present_scene_sends_personal_views(
        self, db_session, manager, broadcaster, sample_board, make_scene, card,
        sample_user, sample_member,
    ):
        present = make_scene("Discuss", SceneMode.PRESENT.value, current=True)
        mine = connect(manager, "c1", sample_member.id, sample_board.id)
        anonymous = connect(manager, "c2", None, sample_board.id)

        broadcaster.scene_changed(db_session, sample_board, present, {"id": present.id})

        [event] = mine.events()
        assert event["type"] == "scene_changed"
        assert "present_mode_data" in event
        assert anonymous.frames == []

    def test_presence_events_carry_presence_data(
        self, db_session, manager, broadcaster, sample_board, sample_user
    ):
        stream = connect(manager, "c1", sample_user.id, sample_board.id)
        broadcaster.presence.update(sample_user.id, sample_board.id)

        broadcaster.user_joined(db_session, sample_board, sample_user.id)

        [event] = stream.events()
        assert event["type"] == "user_joined"
        assert event["user_id"] == sample_user.id
        assert event["presence_data"]["connected_users_count"] == 1


class TestBroadcastErrorPolicy:
    """Enriched payloads fall back on failure; vote broadcasts propagate."""

    def test_present_view_failure_sends_minimal_payload(
        self, db_session, manager, broadcaster, sample_board, make_scene, card,
        sample_user, sample_member,
    ):
        present = make_scene("Discuss", SceneMode.PRESENT.value, current=True)
        first = connect(manager, "c1", sample_member.id, sample_board.id)
        second = connect(manager, "c2", sample_user.id, sample_board.id)

        with patch(
            "teambeat.realtime.broadcast.build_present_mode_data",
            side_effect=RuntimeError("view failed"),
        ):
            broadcaster.scene_changed(db_session, sample_board, present, {"id": present.id})

        for stream in (first, second):
            [event] = stream.events()
            assert event["type"] == "scene_changed"
            assert event["scene"] == {"id": present.id}
            assert "present_mode_data" not in event

    def test_one_failing_view_does_not_affect_others(
        self, db_session, manager, broadcaster, sample_board, make_scene, card,
        sample_user, sample_member,
    ):
        from teambeat.realtime import broadcast

        present = make_scene("Discuss", SceneMode.PRESENT.value, current=True)
        failing = connect(manager, "c1", sample_member.id, sample_board.id)
        working = connect(manager, "c2", sample_user.id, sample_board.id)
        real_build = broadcast.build_present_mode_data

        def build(db, board_id, user_id, notes_locks):
            if user_id == sample_member.id:
                raise RuntimeError("view failed")
            return real_build(db, board_id, user_id, notes_locks)

        with patch("teambeat.realtime.broadcast.build_present_mode_data", side_effect=build):
            broadcaster.update_presentation(db_session, sample_board.id, card_id=card.id)

        assert "present_mode_data" not in failing.events()[0]
        assert "present_mode_data" in working.events()[0]

    def test_presence_failure_sends_minimal_payload(
        self, db_session, manager, broadcaster, sample_board, sample_user
    ):
        stream = connect(manager, "c1", sample_user.id, sample_board.id)

        with patch(
            "teambeat.realtime.broadcast.build_presence_data",
            side_effect=RuntimeError("presence failed"),
        ):
            broadcaster.presence_update(db_session, sample_board, sample_user.id, "typing")

        [event] = stream.events()
        assert event["type"] == "presence_update"
        assert event["user_id"] == sample_user.id
        assert event["activity"] == "typing"
        assert "presence_data" not in event

    def test_vote_changed_reraises(
        self, db_session, manager, broadcaster, sample_board, sample_scene, card, sample_user
    ):
        stream = connect(manager, "c1", sample_user.id, sample_board.id)

        with patch(
            "teambeat.realtime.broadcast.build_voting_stats",
            side_effect=RuntimeError("stats failed"),
        ):
            with pytest.raises(RuntimeError, match="stats failed"):
                broadcaster.vote_changed(
                    db_session, sample_board, sample_scene, card.id, 1, sample_user.id
                )

        assert stream.frames == []

    def test_vote_updates_for_scene_reraises(
        self, db_session, manager, broadcaster, sample_board, sample_scene, card, sample_user
    ):
        connect(manager, "c1", sample_user.id, sample_board.id)

        with patch(
            "teambeat.realtime.broadcast.build_voting_stats",
            side_effect=RuntimeError("stats failed"),
        ):
            with pytest.raises(RuntimeError, match="stats failed"):
                broadcaster.vote_updates_for_scene(db_session, sample_board, sample_scene)


class TestDeferredBroadcaster:
    def test_events_held_until_flush(self, manager, sample_board):
        stream = connect(manager, "c1", "u1", sample_board.id)
        deferred = Broadcaster(manager, PresenceStore(), NotesLockStore(), deferred=True)

        assert deferred.card_deleted(sample_board.id, "card-1") == 0
        deferred.emit_to_user(sample_board.id, "u1", "timer_update", remaining=30)
        assert stream.frames == []
        assert deferred.pending_count == 2

        assert deferred.flush() == 2
        assert stream.event_types() == ["card_deleted", "timer_update"]
        assert deferred.pending_count == 0
        assert deferred.flush() == 0

    def test_discard_drops_held_events(self, manager, sample_board):
        stream = connect(manager, "c1", "u1", sample_board.id)
        deferred = Broadcaster(manager, PresenceStore(), NotesLockStore(), deferred=True)

        deferred.card_deleted(sample_board.id, "card-1")
        deferred.discard()

        assert deferred.flush() == 0
        assert stream.frames == []

    def test_immediate_broadcaster_sends_straight_away(self, manager, broadcaster, sample_board):
        stream = connect(manager, "c1", "u1", sample_board.id)
        assert broadcaster.card_deleted(sample_board.id, "card-1") == 1
        assert stream.event_types() == ["card_deleted"]
        assert broadcaster.pending_count == 0
