"""Tests for scene modes, default flag sets and permission evaluation."""

from dataclasses import dataclass, field

import pytest

from teambeat.permissions import (
    can_manage_board,
    is_actionable,
    is_allowed,
    is_series_admin,
    is_shown,
    vote_audience,
    votes_visible,
)
from teambeat.scene_flags import (
    FLAG_LABELS,
    SceneFlag,
    SceneMode,
    default_flags_for,
    parse_flags,
)


@dataclass
class FakeScene:
    flag_set: frozenset = field(default_factory=frozenset)


class TestDefaultFlags:
    """Tests for the per-mode default flag sets."""

    def test_columns_mode_allows_brainstorming(self):
        flags = default_flags_for("columns")
        assert SceneFlag.ALLOW_ADD_CARDS in flags
        assert SceneFlag.ALLOW_VOTING in flags
        assert SceneFlag.SHOW_VOTES in flags
        assert SceneFlag.MULTIPLE_VOTES_PER_CARD not in flags

    def test_present_mode_is_read_mostly(self):
        assert default_flags_for(SceneMode.PRESENT) == frozenset(
            {SceneFlag.SHOW_VOTES, SceneFlag.SHOW_COMMENTS, SceneFlag.ALLOW_COMMENTS}
        )

    def test_review_mode_allows_multiple_votes(self):
        assert SceneFlag.MULTIPLE_VOTES_PER_CARD in default_flags_for("review")

    def test_static_mode_has_no_flags(self):
        assert default_flags_for("static") == frozenset()

    def test_unknown_mode_has_no_flags(self):
        assert default_flags_for("karaoke") == frozenset()

    def test_every_mode_has_defaults(self):
        for mode in SceneMode:
            assert isinstance(default_flags_for(mode.value), frozenset)

    def test_every_flag_has_label(self):
        assert set(FLAG_LABELS) == set(SceneFlag)


class TestParseFlags:
    def test_parse_known_flags(self):
        assert parse_flags(["allow_voting", "show_votes"]) == frozenset(
            {SceneFlag.ALLOW_VOTING, SceneFlag.SHOW_VOTES}
        )

    def test_parse_unknown_flag_raises(self):
        with pytest.raises(ValueError):
            parse_flags(["allow_everything"])


class TestIsAllowed:
    """Tests for combining board status with scene flags."""

    @pytest.mark.parametrize("status", ["draft", "active"])
    def test_flag_present_on_actionable_board(self, status):
        scene = FakeScene(frozenset({SceneFlag.ALLOW_VOTING}))
        assert is_allowed(scene, status, SceneFlag.ALLOW_VOTING)

    @pytest.mark.parametrize("status", ["completed", "archived"])
    def test_closed_board_allows_nothing(self, status):
        scene = FakeScene(frozenset(SceneFlag))
        assert not is_actionable(status)
        assert not is_allowed(scene, status, SceneFlag.ALLOW_ADD_CARDS)

    def test_missing_flag_is_denied(self):
        scene = FakeScene(frozenset({SceneFlag.SHOW_VOTES}))
        assert not is_allowed(scene, "active", SceneFlag.ALLOW_VOTING)

    def test_no_scene_allows_nothing(self):
        assert not is_allowed(None, "active", SceneFlag.ALLOW_ADD_CARDS)


class TestIsShown:
    def test_view_flag_ignores_board_status(self):
        scene = FakeScene(frozenset({SceneFlag.SHOW_COMMENTS}))
        assert is_shown(scene, SceneFlag.SHOW_COMMENTS)

    def test_mutating_flag_is_rejected(self):
        with pytest.raises(ValueError):
            is_shown(FakeScene(), SceneFlag.ALLOW_VOTING)


class TestVoteAudience:
    """Tests for who hears about vote changes."""

    def test_revealed_votes_go_to_board(self):
        scene = FakeScene(frozenset({SceneFlag.SHOW_VOTES, SceneFlag.ALLOW_VOTING}))
        assert vote_audience(scene, "active") == "board"
        assert votes_visible(scene, "active")

    def test_blind_voting_goes_to_voter(self):
        scene = FakeScene(frozenset({SceneFlag.ALLOW_VOTING}))
        assert vote_audience(scene, "active") == "user"
        assert not votes_visible(scene, "active")

    def test_revealed_votes_stay_visible_on_closed_board(self):
        scene = FakeScene(frozenset({SceneFlag.SHOW_VOTES}))
        assert vote_audience(scene, "completed") == "board"

    def test_blind_voting_on_closed_board_has_no_audience(self):
        scene = FakeScene(frozenset({SceneFlag.ALLOW_VOTING}))
        assert vote_audience(scene, "archived") is None

    def test_no_scene_has_no_audience(self):
        assert vote_audience(None, "active") is None


class TestRoles:
    def test_managers(self):
        assert can_manage_board("admin")
        assert can_manage_board("facilitator")
        assert not can_manage_board("member")
        assert not can_manage_board(None)

    def test_series_admin(self):
        assert is_series_admin("admin")
        assert not is_series_admin("facilitator")
