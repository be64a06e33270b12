"""Tests for HealthRepository: survey questions, presets and responses."""

import pytest

from teambeat.db.repositories import HealthRepository
from teambeat.db.repositories.health import is_valid_rating
from teambeat.exceptions import InvalidRatingError, PresetNotFoundError
from teambeat.services.health_presets import get_preset_by_id, get_preset_metadata


@pytest.fixture
def survey_scene(make_scene):
    return make_scene("Health check", "survey", current=True)


class TestRatings:
    @pytest.mark.parametrize(
        "question_type,rating,valid",
        [
            ("boolean", 0, True),
            ("boolean", 2, False),
            ("range1to5", 5, True),
            ("range1to5", 0, False),
            ("agreetodisagree", 3, True),
            ("redyellowgreen", 3, True),
            ("redyellowgreen", 2, False),
            ("unknown", 1, False),
        ],
    )
    def test_rating_scales(self, question_type, rating, valid):
        assert is_valid_rating(question_type, rating) is valid


class TestQuestions:
    def test_questions_are_sequenced(self, db_session, survey_scene):
        health = HealthRepository(db_session)
        first = health.create_question(survey_scene.id, "Are we shipping?", "boolean")
        second = health.create_question(survey_scene.id, "How is morale?", "range1to5")

        assert second.seq == first.seq + 1
        assert first.thread_id != second.thread_id

    def test_reorder(self, db_session, survey_scene):
        health = HealthRepository(db_session)
        first = health.create_question(survey_scene.id, "One", "boolean")
        second = health.create_question(survey_scene.id, "Two", "boolean")

        health.reorder_questions(survey_scene.id, [second.id, first.id])
        db_session.expire_all()
        ordered = health.find_questions_by_scene(survey_scene.id)
        assert [q.id for q in ordered] == [second.id, first.id]
        assert [q.seq for q in ordered] == [1, 2]

    def test_apply_preset_appends_copies(self, db_session, survey_scene):
        health = HealthRepository(db_session)
        health.create_question(survey_scene.id, "Existing", "boolean")

        created = health.apply_preset(survey_scene.id, "spotify-squad")
        preset = get_preset_by_id("spotify-squad")

        assert len(created) == len(preset.questions)
        assert created[0].seq == 2
        assert all(q.question_type == "redyellowgreen" for q in created)

    def test_unknown_preset(self, db_session, survey_scene):
        with pytest.raises(PresetNotFoundError):
            HealthRepository(db_session).apply_preset(survey_scene.id, "nope")

    def test_preset_metadata(self):
        ids = {preset["id"] for preset in get_preset_metadata()}
        assert {"gallup-q12", "standout-q8", "spotify-squad", "atlassian-team"} <= ids


class TestResponses:
    def test_upsert_replaces_rating(self, db_session, survey_scene, sample_user):
        health = HealthRepository(db_session)
        question = health.create_question(survey_scene.id, "Morale?", "range1to5")

        health.upsert_response(question.id, sample_user.id, 2)
        health.upsert_response(question.id, sample_user.id, 4)

        responses = health.find_responses_by_user_and_scene(sample_user.id, survey_scene.id)
        assert [r.rating for r in responses] == [4]

    def test_invalid_rating(self, db_session, survey_scene, sample_user):
        health = HealthRepository(db_session)
        question = health.create_question(survey_scene.id, "Traffic light", "redyellowgreen")
        with pytest.raises(InvalidRatingError):
            health.upsert_response(question.id, sample_user.id, 4)

    def test_completion(self, db_session, survey_scene, sample_user):
        health = HealthRepository(db_session)
        assert health.check_user_completion(survey_scene.id, sample_user.id)["completed"]

        first = health.create_question(survey_scene.id, "One", "boolean")
        health.create_question(survey_scene.id, "Two", "boolean")
        health.upsert_response(first.id, sample_user.id, 1)

        completion = health.check_user_completion(survey_scene.id, sample_user.id)
        assert completion == {
            "completed": False,
            "total_questions": 2,
            "answered_questions": 1,
        }

    def test_results(self, db_session, survey_scene, sample_user, sample_member):
        health = HealthRepository(db_session)
        question = health.create_question(survey_scene.id, "Morale?", "range1to5")
        health.upsert_response(question.id, sample_user.id, 2)
        health.upsert_response(question.id, sample_member.id, 4)

        [result] = health.get_scene_results(survey_scene.id, user_id=sample_member.id)
        assert result["total_responses"] == 2
        assert result["average"] == 3
        assert result["distribution"] == {2: 1, 4: 1}
        assert result["user_rating"] == 4
