"""Tests for BoardRepository, ColumnRepository and SceneRepository."""

from datetime import timedelta

import pytest

from teambeat.db.repositories import (
    BoardRepository,
    CardRepository,
    ColumnRepository,
    SceneRepository,
    SeriesRepository,
    VoteRepository,
)
from teambeat.db.repositories.board import as_utc
from teambeat.models.db import Card, Column, Scene, Vote, utcnow
from teambeat.scene_flags import SceneFlag, SceneMode, default_flags_for
from teambeat.services.board_templates import (
    ICEBREAKER_QUESTIONS,
    KAFE,
    LEAN_COFFEE,
    START_STOP_CONTINUE,
    TRACTION,
)


class TestBoardLifecycle:
    def test_new_board_is_draft_with_default_allocation(self, db_session, sample_series):
        board = BoardRepository(db_session).create_board(sample_series.id, "Retro")
        assert board.status == "draft"
        assert board.voting_allocation == 3
        assert board.current_scene_id is None

    def test_update_status_rejects_unknown_status(self, db_session, sample_board):
        with pytest.raises(ValueError):
            BoardRepository(db_session).update_board_status(sample_board.id, "paused")

    def test_settings_ignore_unknown_fields(self, db_session, sample_board):
        board = BoardRepository(db_session).update_board_settings(
            sample_board.id, name="Renamed", status="archived"
        )
        assert board.name == "Renamed"
        assert board.status == "active"

    def test_delete_board_cascades(self, db_session, sample_board, sample_user, sample_columns):
        cards = CardRepository(db_session)
        first = cards.create_card(sample_columns[0].id, sample_user.id, "Shipped on time")
        cards.create_card(sample_columns[0].id, sample_user.id, "Good pairing")
        cards.create_card(sample_columns[1].id, sample_user.id, "Flaky CI")
        VoteRepository(db_session).cast_vote(first.id, sample_user.id, 1)
        SceneRepository(db_session).create_scene(sample_board.id, "Brainstorm", "columns")
        db_session.commit()

        board_id = sample_board.id
        column_ids = [c.id for c in sample_columns]
        first_id = first.id

        assert BoardRepository(db_session).delete_board(board_id)
        db_session.expire_all()

        assert db_session.query(Column).filter(Column.board_id == board_id).count() == 0
        assert db_session.query(Card).filter(Card.column_id.in_(column_ids)).count() == 0
        assert db_session.query(Vote).filter(Vote.card_id == first_id).count() == 0
        assert db_session.query(Scene).filter(Scene.board_id == board_id).count() == 0

    def test_delete_missing_board(self, db_session):
        assert not BoardRepository(db_session).delete_board("missing")


class TestBoardDetails:
    def test_columns_hidden_in_current_scene(
        self, db_session, sample_board, sample_columns, sample_scene
    ):
        went_well, to_improve = sample_columns
        ColumnRepository(db_session).set_scene_visibility(
            sample_scene.id, to_improve.id, "hidden"
        )
        details = BoardRepository(db_session).get_board_with_details(sample_board.id)

        assert details.current_scene.id == sample_scene.id
        assert [c.id for c in details.columns] == [went_well.id]
        assert [c.id for c in details.all_columns] == [went_well.id, to_improve.id]
        assert details.hidden_columns_by_scene == {sample_scene.id: [to_improve.id]}

    def test_missing_board(self, db_session):
        assert BoardRepository(db_session).get_board_with_details("missing") is None


class TestConfiguration:
    def test_empty_board_has_no_configuration(self, db_session, sample_board):
        assert not BoardRepository(db_session).has_configuration(sample_board.id)

    def test_a_column_counts_as_configuration(self, db_session, sample_board, sample_columns):
        assert BoardRepository(db_session).has_configuration(sample_board.id)

    def test_apply_template(self, db_session, sample_board):
        boards = BoardRepository(db_session)
        columns, scenes = boards.apply_template(sample_board.id, KAFE)
        db_session.refresh(sample_board)

        assert [c.title for c in columns] == [
            "Kvetches",
            "Appreciations",
            "Flaws",
            "Experiments",
        ]
        assert [c.seq for c in columns] == [1, 2, 3, 4]
        assert [s.title for s in scenes][:3] == ["Gather", "Group", "Kvetch"]
        assert sample_board.current_scene_id == scenes[0].id
        assert scenes[0].flag_set == frozenset(
            {
                SceneFlag.ALLOW_ADD_CARDS,
                SceneFlag.ALLOW_EDIT_CARDS,
                SceneFlag.ALLOW_OBSCURE_CARDS,
                SceneFlag.ALLOW_MOVE_CARDS,
            }
        )

        hidden = ColumnRepository(db_session).get_hidden_columns_by_scene(
            [s.id for s in scenes]
        )
        kvetch = scenes[2]
        assert set(hidden[kvetch.id]) == {c.id for c in columns[1:]}
        assert scenes[0].id not in hidden

    def test_template_scene_showing_no_columns(self, db_session, sample_board):
        columns, scenes = BoardRepository(db_session).apply_template(
            sample_board.id, TRACTION
        )
        scorecard = next(s for s in scenes if s.title == "Scorecard")
        visible = ColumnRepository(db_session).get_visible_column_ids(
            sample_board.id, scorecard.id
        )
        assert visible == []
        assert len(columns) == 1

    def test_icebreaker_description_is_drawn_at_setup(self, db_session, sample_board):
        columns, _ = BoardRepository(db_session).apply_template(sample_board.id, LEAN_COFFEE)
        assert columns[0].description in ICEBREAKER_QUESTIONS

    def test_clone_configuration(self, db_session, sample_series, sample_board):
        boards = BoardRepository(db_session)
        source_columns, source_scenes = boards.apply_template(sample_board.id, KAFE)
        ColumnRepository(db_session).update(source_columns[0].id, default_appearance="hidden")
        target = boards.create_board(sample_series.id, "Sprint 43")

        columns, scenes = boards.clone_configuration(sample_board.id, target.id)
        db_session.refresh(target)

        assert [c.title for c in columns] == [c.title for c in source_columns]
        assert columns[0].default_appearance == "hidden"
        assert {c.board_id for c in columns} == {target.id}
        assert [(s.title, s.mode, s.flag_set) for s in scenes] == [
            (s.title, s.mode, s.flag_set) for s in source_scenes
        ]
        assert target.current_scene_id == scenes[0].id

        hidden = ColumnRepository(db_session).get_hidden_columns_by_scene(
            [s.id for s in scenes]
        )
        new_ids = {source.id: column.id for source, column in zip(source_columns, columns)}
        source_hidden = ColumnRepository(db_session).get_hidden_columns_by_scene(
            [s.id for s in source_scenes]
        )
        for source_scene, scene in zip(source_scenes, scenes):
            expected = {new_ids[c] for c in source_hidden.get(source_scene.id, [])}
            assert set(hidden.get(scene.id, [])) == expected

    def test_clone_copies_no_cards(self, db_session, sample_series, sample_board, sample_user):
        boards = BoardRepository(db_session)
        source_columns, _ = boards.apply_template(sample_board.id, START_STOP_CONTINUE)
        CardRepository(db_session).create_card(source_columns[0].id, sample_user.id, "Pair more")
        target = boards.create_board(sample_series.id, "Sprint 43")

        columns, _ = boards.clone_configuration(sample_board.id, target.id)

        column_ids = [c.id for c in columns]
        assert db_session.query(Card).filter(Card.column_id.in_(column_ids)).count() == 0


class TestCloneSources:
    def test_current_and_other_series(self, db_session, sample_user, sample_series, sample_board):
        boards = BoardRepository(db_session)
        draft = boards.create_board(sample_series.id, "Next sprint")
        archived = boards.create_board(sample_series.id, "Old sprint")
        boards.update_board_status(archived.id, "archived")

        other = SeriesRepository(db_session).create_series("Design Guild", sample_user.id)
        older = boards.create_board(other.id, "Guild 1")
        boards.update_board_status(older.id, "completed")
        newer = boards.create_board(other.id, "Guild 2")
        boards.update_board_status(newer.id, "active")
        older.created_at = utcnow() - timedelta(days=7)
        boards.create_board(other.id, "Guild draft")
        db_session.flush()

        sources = boards.find_clone_sources(draft, [sample_series.id, other.id])

        assert [s["id"] for s in sources["current_series"]] == [sample_board.id]
        assert [s["id"] for s in sources["other_series"]] == [newer.id]
        assert sources["other_series"][0]["series_name"] == "Design Guild"

    def test_series_the_user_is_not_in_are_ignored(
        self, db_session, sample_user, sample_series, sample_board
    ):
        boards = BoardRepository(db_session)
        other = SeriesRepository(db_session).create_series("Design Guild", sample_user.id)
        boards.update_board_status(boards.create_board(other.id, "Guild 1").id, "active")
        draft = boards.create_board(sample_series.id, "Next sprint")

        sources = boards.find_clone_sources(draft, [sample_series.id])

        assert sources["other_series"] == []
        assert [s["id"] for s in sources["current_series"]] == [sample_board.id]


class TestTimer:
    def test_start_and_state(self, db_session, sample_board):
        boards = BoardRepository(db_session)
        board = boards.start_timer(sample_board.id, 300)
        started = as_utc(board.timer_started_at)
        state = BoardRepository.timer_state(board, now=started + timedelta(seconds=60))
        assert state == {"timer_passed": 60, "timer_remaining": 240, "active": True}

    def test_finished_timer_is_inactive(self, db_session, sample_board):
        board = BoardRepository(db_session).start_timer(sample_board.id, 30)
        state = BoardRepository.timer_state(
            board, now=as_utc(board.timer_started_at) + timedelta(seconds=90)
        )
        assert state["timer_remaining"] == 0
        assert not state["active"]

    def test_extend_without_timer(self, db_session, sample_board):
        assert BoardRepository(db_session).extend_timer(sample_board.id, 60) is None

    def test_extend_never_drops_below_elapsed(self, db_session, sample_board):
        boards = BoardRepository(db_session)
        boards.update(
            sample_board.id,
            timer_started_at=utcnow() - timedelta(seconds=100),
            timer_duration=120,
        )
        board = boards.extend_timer(sample_board.id, -60)
        assert board.timer_duration >= 100

    def test_stop(self, db_session, sample_board):
        boards = BoardRepository(db_session)
        boards.start_timer(sample_board.id, 60)
        board = boards.stop_timer(sample_board.id)
        assert BoardRepository.timer_state(board)["active"] is False


class TestColumns:
    def test_columns_are_appended_in_order(self, db_session, sample_board, sample_columns):
        third = ColumnRepository(db_session).create_column(sample_board.id, "Actions")
        ordered = ColumnRepository(db_session).find_by_board(sample_board.id)
        assert [c.id for c in ordered][-1] == third.id
        assert [c.seq for c in ordered] == sorted(c.seq for c in ordered)

    def test_reorder(self, db_session, sample_board, sample_columns):
        first, second = sample_columns
        columns = ColumnRepository(db_session)
        columns.reorder_columns(sample_board.id, [(second.id, 1), (first.id, 2)])
        db_session.expire_all()
        assert [c.id for c in columns.find_by_board(sample_board.id)] == [second.id, first.id]

    def test_visibility_upsert(self, db_session, sample_board, sample_columns, sample_scene):
        columns = ColumnRepository(db_session)
        columns.set_scene_visibility(sample_scene.id, sample_columns[0].id, "hidden")
        columns.set_scene_visibility(sample_scene.id, sample_columns[0].id, "visible")
        assert columns.get_visible_column_ids(sample_board.id, sample_scene.id) == [
            c.id for c in sample_columns
        ]


class TestScenes:
    def test_scene_gets_mode_defaults(self, db_session, sample_board):
        scene = SceneRepository(db_session).create_scene(
            sample_board.id, "Review", SceneMode.REVIEW.value
        )
        assert scene.flag_set == default_flags_for("review")

    def test_explicit_flags_override_defaults(self, db_session, sample_board):
        scene = SceneRepository(db_session).create_scene(
            sample_board.id, "Blind vote", "columns", flags=[SceneFlag.ALLOW_VOTING]
        )
        assert scene.flag_set == frozenset({SceneFlag.ALLOW_VOTING})

    def test_set_flags_replaces_set(self, db_session, sample_scene):
        scenes = SceneRepository(db_session)
        scenes.set_flags(sample_scene.id, [SceneFlag.SHOW_VOTES])
        assert scenes.get_flags(sample_scene.id) == frozenset({SceneFlag.SHOW_VOTES})
        assert not scenes.has_flag(sample_scene.id, SceneFlag.ALLOW_ADD_CARDS)

    def test_scenes_are_sequenced(self, db_session, sample_board):
        scenes = SceneRepository(db_session)
        first = scenes.create_scene(sample_board.id, "One", "columns")
        second = scenes.create_scene(sample_board.id, "Two", "present")
        assert second.seq == first.seq + 1

        scenes.reorder_scenes(sample_board.id, [(first.id, 2), (second.id, 1)])
        db_session.expire_all()
        assert [s.id for s in scenes.find_by_board(sample_board.id)] == [second.id, first.id]
