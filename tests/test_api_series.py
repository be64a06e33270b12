"""
Tests for the series API and membership management.
"""

from fastapi.testclient import TestClient

from teambeat.db.repositories import BoardRepository


class TestSeries:
    def test_create_makes_caller_admin(self, api_client: TestClient, login, sample_user):
        login(sample_user)
        response = api_client.post(
            "/api/series", json={"name": "Mobile Squad", "description": "Fortnightly"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "admin"
        assert data["series"]["name"] == "Mobile Squad"

        listed = api_client.get("/api/series").json()["series"]
        assert "Mobile Squad" in [s["name"] for s in listed]

    def test_members_do_not_see_drafts(
        self, api_client: TestClient, db_session, login, sample_member, sample_series, sample_board
    ):
        BoardRepository(db_session).create_board(sample_series.id, "Next sprint")
        db_session.commit()
        login(sample_member)

        data = api_client.get(f"/api/series/{sample_series.id}").json()
        assert data["role"] == "member"
        assert [b["name"] for b in data["boards"]] == ["Sprint 42"]

        [listed] = api_client.get("/api/series").json()["series"]
        assert listed["current_board_id"] == sample_board.id

    def test_outsider_denied(self, api_client: TestClient, login, sample_outsider, sample_series):
        login(sample_outsider)
        response = api_client.get(f"/api/series/{sample_series.id}")
        assert response.status_code == 403

    def test_only_admin_deletes(
        self, api_client: TestClient, login, sample_user, sample_member, sample_series
    ):
        login(sample_member)
        assert api_client.delete(f"/api/series/{sample_series.id}").status_code == 403

        login(sample_user)
        assert api_client.delete(f"/api/series/{sample_series.id}").status_code == 200
        assert api_client.get(f"/api/series/{sample_series.id}").status_code == 404


class TestMembers:
    def test_add_change_remove(
        self, api_client: TestClient, login, sample_user, sample_outsider, sample_series
    ):
        login(sample_user)
        url = f"/api/series/{sample_series.id}/members"

        added = api_client.post(url, json={"email": sample_outsider.email, "role": "facilitator"})
        assert added.status_code == 201
        roles = {m["user_id"]: m["role"] for m in added.json()["members"]}
        assert roles[sample_outsider.id] == "facilitator"

        duplicate = api_client.post(url, json={"email": sample_outsider.email})
        assert duplicate.status_code == 409

        changed = api_client.put(f"{url}/{sample_outsider.id}", json={"role": "member"})
        roles = {m["user_id"]: m["role"] for m in changed.json()["members"]}
        assert roles[sample_outsider.id] == "member"

        removed = api_client.delete(f"{url}/{sample_outsider.id}")
        assert sample_outsider.id not in [m["user_id"] for m in removed.json()["members"]]

    def test_unknown_email(self, api_client: TestClient, login, sample_user, sample_series):
        login(sample_user)
        response = api_client.post(
            f"/api/series/{sample_series.id}/members", json={"email": "ghost@example.com"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    def test_member_cannot_manage_members(
        self, api_client: TestClient, login, sample_member, sample_outsider, sample_series
    ):
        login(sample_member)
        response = api_client.post(
            f"/api/series/{sample_series.id}/members", json={"email": sample_outsider.email}
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Only series admins can manage members"

    def test_admin_cannot_demote_another_admin(
        self, api_client: TestClient, login, sample_user, sample_outsider, sample_series
    ):
        login(sample_user)
        url = f"/api/series/{sample_series.id}/members"
        api_client.post(url, json={"email": sample_outsider.email, "role": "admin"})

        response = api_client.put(f"{url}/{sample_outsider.id}", json={"role": "member"})
        assert response.status_code == 403
