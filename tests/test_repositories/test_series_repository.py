"""Tests for SeriesRepository and UserRepository."""

from teambeat.db.repositories import BoardRepository, SeriesRepository, UserRepository


class TestSeries:
    def test_creator_becomes_admin(self, db_session, sample_user, sample_series):
        role = SeriesRepository(db_session).get_user_role_in_series(
            sample_user.id, sample_series.id
        )
        assert role == "admin"

    def test_slug_is_unique_per_series(self, db_session, sample_user):
        series = SeriesRepository(db_session)
        first = series.create_series("Platform Team", sample_user.id)
        second = series.create_series("Platform Team", sample_user.id)
        assert first.slug.startswith("platform-team-")
        assert first.slug != second.slug

    def test_non_member_has_no_role(self, db_session, sample_series, sample_outsider):
        role = SeriesRepository(db_session).get_user_role_in_series(
            sample_outsider.id, sample_series.id
        )
        assert role is None

    def test_site_admin_is_admin_everywhere(self, db_session, sample_series):
        admin = UserRepository(db_session).create_user(
            email="root@example.com", password_hash="x", is_admin=True
        )
        role = SeriesRepository(db_session).get_user_role_in_series(admin.id, sample_series.id)
        assert role == "admin"

    def test_member_roles(self, db_session, sample_series, sample_member):
        series = SeriesRepository(db_session)
        series.update_member_role(sample_series.id, sample_member.id, "facilitator")
        assert (
            series.get_user_role_in_series(sample_member.id, sample_series.id) == "facilitator"
        )
        assert series.remove_member(sample_series.id, sample_member.id)
        assert series.get_user_role_in_series(sample_member.id, sample_series.id) is None

    def test_members_listing(self, db_session, sample_series, sample_user, sample_member):
        members = SeriesRepository(db_session).get_members(sample_series.id)
        assert {m["user_id"] for m in members} == {sample_user.id, sample_member.id}
        assert set(SeriesRepository(db_session).get_member_user_ids(sample_series.id)) == {
            sample_user.id,
            sample_member.id,
        }

    def test_delete_series_removes_boards(self, db_session, sample_series, sample_board):
        series_id, board_id = sample_series.id, sample_board.id
        assert SeriesRepository(db_session).delete_series(series_id)
        db_session.expire_all()
        assert BoardRepository(db_session).find_by_id(board_id) is None


class TestUsers:
    def test_email_lookup_is_case_insensitive(self, db_session, sample_user):
        found = UserRepository(db_session).find_by_email("  ADA@example.com ")
        assert found.id == sample_user.id

    def test_unknown_email(self, db_session):
        assert UserRepository(db_session).find_by_email("nobody@example.com") is None
