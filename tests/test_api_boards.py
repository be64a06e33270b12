"""
Tests for the board, scene and column API routes.
"""

from fastapi.testclient import TestClient

from teambeat.db.repositories import BoardRepository, SceneRepository, SeriesRepository
from teambeat.scene_flags import SceneFlag, SceneMode
from teambeat.services.board_templates import KAFE


class TestCreateBoard:
    def test_admin_creates_draft_board(self, api_client: TestClient, login, sample_user, sample_series):
        login(sample_user)
        response = api_client.post(
            "/api/boards", json={"series_id": sample_series.id, "name": "Sprint 43"}
        )

        assert response.status_code == 201
        board = response.json()["board"]
        assert board["name"] == "Sprint 43"
        assert board["status"] == "draft"
        assert board["voting_allocation"] == 3

    def test_member_cannot_create(self, api_client: TestClient, login, sample_member, sample_series):
        login(sample_member)
        response = api_client.post(
            "/api/boards", json={"series_id": sample_series.id, "name": "Sprint 43"}
        )
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_unknown_series(self, api_client: TestClient, login, sample_user):
        login(sample_user)
        response = api_client.post("/api/boards", json={"series_id": "missing", "name": "x"})
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Series not found"}

    def test_requires_login(self, api_client: TestClient, sample_series):
        response = api_client.post(
            "/api/boards", json={"series_id": sample_series.id, "name": "x"}
        )
        assert response.status_code == 401


class TestGetBoard:
    def test_board_screen_payload(
        self, api_client: TestClient, login, sample_member, sample_board, sample_scene
    ):
        login(sample_member)
        response = api_client.get(f"/api/boards/{sample_board.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["board"]["id"] == sample_board.id
        assert data["current_scene"]["id"] == sample_scene.id
        assert len(data["columns"]) == len(data["all_columns"]) == 2
        assert data["cards"] == []
        assert data["user_role"] == "member"
        assert data["timer"]["active"] is False

    def test_outsider_is_denied(self, api_client: TestClient, login, sample_outsider, sample_board):
        login(sample_outsider)
        response = api_client.get(f"/api/boards/{sample_board.id}")
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Access denied"}

    def test_missing_board(self, api_client: TestClient, login, sample_user):
        login(sample_user)
        response = api_client.get("/api/boards/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Board not found"

    def test_viewing_marks_presence(
        self, api_client: TestClient, login, sample_user, sample_board
    ):
        login(sample_user)
        api_client.get(f"/api/boards/{sample_board.id}")
        assert sample_user.id in api_client.app.state.presence.get_active_user_ids(sample_board.id)


class TestUpdateBoard:
    def test_settings_and_status(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.put(
            f"/api/boards/{sample_board.id}",
            json={"name": "Renamed", "status": "completed", "blame_free_mode": True},
        )
        assert response.status_code == 200
        board = response.json()["board"]
        assert board["name"] == "Renamed"
        assert board["status"] == "completed"
        assert board["blame_free_mode"] is True

    def test_unknown_status_is_invalid(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.put(f"/api/boards/{sample_board.id}", json={"status": "paused"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request data"

    def test_member_cannot_update(self, api_client: TestClient, login, sample_member, sample_board):
        login(sample_member)
        response = api_client.put(f"/api/boards/{sample_board.id}", json={"name": "Mine"})
        assert response.status_code == 403

    def test_delete(self, api_client: TestClient, db_session, login, sample_user, sample_board):
        login(sample_user)
        board_id = sample_board.id
        assert api_client.delete(f"/api/boards/{board_id}").status_code == 200
        db_session.expire_all()
        assert BoardRepository(db_session).find_by_id(board_id) is None


class TestBoardSetup:
    def test_setup_from_template(
        self, api_client: TestClient, login, sample_user, sample_member, sample_board
    ):
        frames = []
        api_client.app.state.sse_manager.add_client(
            "watcher", frames.append, user_id=sample_member.id, board_id=sample_board.id
        )
        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/setup-template", json={"template": "madsadglad"}
        )

        assert response.status_code == 200
        data = response.json()
        assert [c["title"] for c in data["columns"]] == ["Mad", "Sad", "Glad"]
        assert [s["title"] for s in data["scenes"]] == [
            "Share Feelings",
            "Explore Together",
            "Find Solutions",
        ]
        assert data["board"]["current_scene_id"] == data["scenes"][0]["id"]
        assert "allow_add_cards" in data["scenes"][0]["flags"]
        assert any('"type": "columns_updated"' in frame for frame in frames)

    def test_default_template(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.post(f"/api/boards/{sample_board.id}/setup-template", json={})
        assert [c["title"] for c in response.json()["columns"]][0] == "Kvetches"

    def test_unknown_template(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/setup-template", json={"template": "nope"}
        )
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Template not found"}

    def test_configured_board_is_refused(
        self, api_client: TestClient, login, sample_user, sample_board, sample_columns
    ):
        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/setup-template", json={"template": "kafe"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Board already has configuration"

    def test_member_cannot_set_up(self, api_client: TestClient, login, sample_member, sample_board):
        login(sample_member)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/setup-template", json={"template": "kafe"}
        )
        assert response.status_code == 403

    def test_list_templates(self, api_client: TestClient, login, sample_member):
        login(sample_member)
        templates = api_client.get("/api/templates").json()["templates"]
        ids = [t["id"] for t in templates]
        assert ids[0] == "kafe"
        assert {"leancoffee", "traction", "startstop", "madsadglad", "fourls"} <= set(ids)
        assert templates[0]["scenes"] == 7


class TestBoardClone:
    def test_clone_from_series_board(
        self, api_client: TestClient, db_session, login, sample_user, sample_series, sample_board
    ):
        boards = BoardRepository(db_session)
        boards.apply_template(sample_board.id, KAFE)
        target = boards.create_board(sample_series.id, "Sprint 43")
        db_session.commit()

        login(sample_user)
        response = api_client.post(
            f"/api/boards/{target.id}/clone", json={"source_id": sample_board.id}
        )

        assert response.status_code == 200
        data = response.json()
        assert [c["title"] for c in data["columns"]] == [c.title for c in KAFE.columns]
        assert all(c["board_id"] == target.id for c in data["columns"])
        assert data["board"]["current_scene_id"] == data["scenes"][0]["id"]

    def test_missing_source(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/clone", json={"source_id": "missing"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "Source board not found"

    def test_source_in_foreign_series(
        self, api_client: TestClient, db_session, login, sample_user, sample_outsider, sample_board
    ):
        foreign = SeriesRepository(db_session).create_series("Secret", sample_outsider.id)
        source = BoardRepository(db_session).create_board(foreign.id, "Hidden")
        db_session.commit()

        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/clone", json={"source_id": source.id}
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Access denied to source board"

    def test_configured_target_is_refused(
        self,
        api_client: TestClient,
        db_session,
        login,
        sample_user,
        sample_series,
        sample_board,
        sample_columns,
    ):
        source = BoardRepository(db_session).create_board(sample_series.id, "Sprint 41")
        db_session.commit()

        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/clone", json={"source_id": source.id}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Target board already has configuration"

    def test_clone_sources(
        self, api_client: TestClient, db_session, login, sample_member, sample_series, sample_board
    ):
        target = BoardRepository(db_session).create_board(sample_series.id, "Sprint 43")
        db_session.commit()

        login(sample_member)
        response = api_client.get(f"/api/boards/{target.id}/clone-sources")

        assert response.status_code == 200
        data = response.json()
        assert [s["id"] for s in data["current_series"]] == [sample_board.id]
        assert data["other_series"] == []


class TestScenes:
    def test_first_scene_becomes_current(
        self, api_client: TestClient, login, sample_user, sample_board
    ):
        login(sample_user)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/scenes",
            json={"title": "Vote", "mode": "columns", "flags": ["allow_voting"]},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["is_current"] is True
        assert data["scene"]["flags"] == ["allow_voting"]

        second = api_client.post(
            f"/api/boards/{sample_board.id}/scenes", json={"title": "Review", "mode": "review"}
        )
        assert second.json()["is_current"] is False

    def test_change_scene(
        self, api_client: TestClient, login, sample_user, sample_board, sample_scene, make_scene
    ):
        review = make_scene("Review", SceneMode.REVIEW.value)
        login(sample_user)

        response = api_client.put(
            f"/api/boards/{sample_board.id}/scene", json={"scene_id": review.id}
        )
        assert response.status_code == 200
        assert response.json()["board"]["current_scene_id"] == review.id

    def test_change_to_scene_of_other_board(
        self, api_client: TestClient, db_session, login, sample_user, sample_board, sample_series
    ):
        other = BoardRepository(db_session).create_board(sample_series.id, "Other")
        foreign = SceneRepository(db_session).create_scene(other.id, "Elsewhere", "columns")
        db_session.commit()
        login(sample_user)

        response = api_client.put(
            f"/api/boards/{sample_board.id}/scene", json={"scene_id": foreign.id}
        )
        assert response.status_code == 404

    def test_update_flags(self, api_client: TestClient, login, sample_user, sample_board, sample_scene):
        login(sample_user)
        response = api_client.put(
            f"/api/boards/{sample_board.id}/scenes/{sample_scene.id}",
            json={"title": "Blind vote", "flags": ["allow_voting", "show_votes"]},
        )
        assert response.status_code == 200
        scene = response.json()["scene"]
        assert scene["title"] == "Blind vote"
        assert scene["flags"] == sorted(
            [SceneFlag.ALLOW_VOTING.value, SceneFlag.SHOW_VOTES.value]
        )

    def test_reorder(self, api_client: TestClient, login, sample_user, sample_board, sample_scene, make_scene):
        review = make_scene("Review", "review")
        login(sample_user)
        response = api_client.put(
            f"/api/boards/{sample_board.id}/scenes/reorder",
            json={"scene_ids": [review.id, sample_scene.id]},
        )
        assert [s["id"] for s in response.json()["scenes"]] == [review.id, sample_scene.id]

    def test_deleting_current_scene_moves_to_first_remaining(
        self, api_client: TestClient, db_session, login, sample_user, sample_board, sample_scene, make_scene
    ):
        review = make_scene("Review", "review")
        login(sample_user)

        response = api_client.delete(f"/api/boards/{sample_board.id}/scenes/{sample_scene.id}")
        assert response.status_code == 200
        db_session.expire_all()
        assert BoardRepository(db_session).find_by_id(sample_board.id).current_scene_id == review.id

    def test_member_cannot_manage_scenes(self, api_client: TestClient, login, sample_member, sample_board):
        login(sample_member)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/scenes", json={"title": "x", "mode": "columns"}
        )
        assert response.status_code == 403


class TestColumns:
    def test_create_and_reorder(self, api_client: TestClient, login, sample_user, sample_board, sample_columns):
        login(sample_user)
        created = api_client.post(
            f"/api/boards/{sample_board.id}/columns", json={"title": "Actions"}
        )
        assert created.status_code == 201
        new_id = created.json()["column"]["id"]

        ids = [new_id] + [c.id for c in sample_columns]
        response = api_client.put(
            f"/api/boards/{sample_board.id}/columns/reorder", json={"column_ids": ids}
        )
        assert response.status_code == 200
        assert [c["id"] for c in response.json()["columns"]] == ids

    def test_hide_column_in_scene(
        self, api_client: TestClient, login, sample_user, sample_board, sample_columns, sample_scene
    ):
        login(sample_user)
        hidden = sample_columns[1]
        response = api_client.put(
            f"/api/boards/{sample_board.id}/scenes/{sample_scene.id}/columns",
            json={"columns": [{"column_id": hidden.id, "state": "hidden"}]},
        )
        assert response.status_code == 200

        board = api_client.get(f"/api/boards/{sample_board.id}").json()
        assert [c["id"] for c in board["columns"]] == [sample_columns[0].id]
        assert board["hidden_columns_by_scene"] == {sample_scene.id: [hidden.id]}


class TestTimer:
    def test_start_extend_stop(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        url = f"/api/boards/{sample_board.id}/timer"

        started = api_client.post(url, json={"duration": 300}).json()
        assert started["active"] is True
        assert 0 < started["timer_remaining"] <= 300

        extended = api_client.put(url, json={"add_seconds": 60}).json()
        assert extended["timer_remaining"] > 300

        stopped = api_client.delete(url).json()
        assert stopped["active"] is False

    def test_extend_without_timer(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.put(
            f"/api/boards/{sample_board.id}/timer", json={"add_seconds": 60}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "No timer is running"

    def test_member_cannot_start(self, api_client: TestClient, login, sample_member, sample_board):
        login(sample_member)
        response = api_client.post(
            f"/api/boards/{sample_board.id}/timer", json={"duration": 60}
        )
        assert response.status_code == 403


class TestVoteControls:
    def test_clear_then_increase(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        cleared = api_client.post(f"/api/boards/{sample_board.id}/votes/clear").json()
        assert cleared["board"]["voting_allocation"] == 0

        increased = api_client.post(
            f"/api/boards/{sample_board.id}/votes/increase-allocation", json={"amount": 2}
        ).json()
        assert increased["board"]["voting_allocation"] == 2
        assert increased["voting_stats"]["max_votes_per_user"] == 2

    def test_present_data_requires_scene(self, api_client: TestClient, login, sample_user, sample_board):
        login(sample_user)
        response = api_client.get(f"/api/boards/{sample_board.id}/present-data")
        assert response.status_code == 404
        assert response.json()["error"] == "Current scene not found"
