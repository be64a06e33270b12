"""
Health check repository: survey questions and responses.
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.connection import with_transaction
from teambeat.db.repositories.base import BaseRepository
from teambeat.exceptions import InvalidRatingError, PresetNotFoundError
from teambeat.models.db import HealthQuestion, HealthResponse, generate_id
from teambeat.services.health_presets import get_preset_by_id

QUESTION_TYPES = ("boolean", "range1to5", "agreetodisagree", "redyellowgreen")

VALID_RATINGS: Dict[str, frozenset[int]] = {
    "boolean": frozenset({0, 1}),
    "range1to5": frozenset(range(1, 6)),
    "agreetodisagree": frozenset(range(1, 6)),
    "redyellowgreen": frozenset({1, 3, 5}),
}


def is_valid_rating(question_type: str, rating: int) -> bool:
    return rating in VALID_RATINGS.get(question_type, frozenset())


class HealthRepository(BaseRepository[HealthQuestion]):
    """Repository for HealthQuestion and HealthResponse models."""

    def __init__(self, session: Session):
        super().__init__(HealthQuestion, session)

    # ===== Questions =====

    def _next_seq(self, scene_id: str) -> int:
        max_seq = (
            self.session.query(func.max(HealthQuestion.seq))
            .filter(HealthQuestion.scene_id == scene_id)
            .scalar()
        )
        return (max_seq or 0) + 1

    def create_question(
        self,
        scene_id: str,
        question: str,
        question_type: str,
        description: Optional[str] = None,
        seq: Optional[int] = None,
    ) -> HealthQuestion:
        """
        Create a survey question. New questions start their own thread.

        Args:
            scene_id: Survey scene
            question: Question text
            question_type: One of QUESTION_TYPES
            description: Optional help text
            seq: Explicit position; defaults to max(seq) + 1

        Returns:
            Created HealthQuestion
        """
        return self.create(
            thread_id=generate_id(),
            scene_id=scene_id,
            question=question,
            description=description,
            question_type=question_type,
            seq=seq if seq is not None else self._next_seq(scene_id),
        )

    def find_question_by_id(self, question_id: str) -> Optional[HealthQuestion]:
        return self.get(question_id)

    def find_questions_by_scene(self, scene_id: str) -> List[HealthQuestion]:
        return (
            self.session.query(HealthQuestion)
            .filter(HealthQuestion.scene_id == scene_id)
            .order_by(HealthQuestion.seq)
            .all()
        )

    def update_question(self, question_id: str, **fields: Any) -> Optional[HealthQuestion]:
        allowed = {"question", "description", "question_type"}
        return self.update(
            question_id, **{k: v for k, v in fields.items() if k in allowed}
        )

    def delete_question(self, question_id: str) -> bool:
        deleted = (
            self.session.query(HealthQuestion)
            .filter(HealthQuestion.id == question_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def reorder_questions(self, scene_id: str, question_ids: Sequence[str]) -> None:
        """
        Renumber a scene's questions in the given order, starting at 1.

        Args:
            scene_id: Survey scene
            question_ids: Question ids in their new order
        """
        with with_transaction(self.session):
            for index, question_id in enumerate(question_ids, start=1):
                self.session.query(HealthQuestion).filter(
                    HealthQuestion.id == question_id,
                    HealthQuestion.scene_id == scene_id,
                ).update({"seq": index}, synchronize_session="fetch")

    def apply_preset(self, scene_id: str, preset_id: str) -> List[HealthQuestion]:
        """
        Append a preset's questions to a scene.

        Args:
            scene_id: Survey scene
            preset_id: Preset id (e.g. "spotify-squad")

        Returns:
            The created questions in order

        Raises:
            PresetNotFoundError: If the preset does not exist
        """
        preset = get_preset_by_id(preset_id)
        if preset is None:
            raise PresetNotFoundError(preset_id)

        created: List[HealthQuestion] = []
        with with_transaction(self.session):
            next_seq = self._next_seq(scene_id)
            for offset, preset_question in enumerate(preset.questions):
                question = HealthQuestion(
                    thread_id=generate_id(),
                    scene_id=scene_id,
                    question=preset_question.question,
                    description=preset_question.description,
                    question_type=preset_question.question_type,
                    seq=next_seq + offset,
                )
                self.session.add(question)
                created.append(question)
            self.session.flush()
        return created

    # ===== Responses =====

    def upsert_response(self, question_id: str, user_id: str, rating: int) -> HealthResponse:
        """
        Record a user's rating, replacing any earlier rating for the question.

        Args:
            question_id: Question id
            user_id: Responding user
            rating: Rating on the question type's scale

        Returns:
            The stored HealthResponse

        Raises:
            InvalidRatingError: If the rating is not valid for the question type
            LookupError: If the question does not exist
        """
        question = self.get(question_id)
        if question is None:
            raise LookupError(f"Health question not found: {question_id}")
        if not is_valid_rating(question.question_type, rating):
            raise InvalidRatingError(question.question_type, rating)

        response = (
            self.session.query(HealthResponse)
            .filter(
                HealthResponse.question_id == question_id,
                HealthResponse.user_id == user_id,
            )
            .first()
        )
        if response is None:
            response = HealthResponse(question_id=question_id, user_id=user_id, rating=rating)
            self.session.add(response)
        else:
            response.rating = rating
        self.session.flush()
        return response

    def find_responses_by_user_and_scene(
        self, user_id: str, scene_id: str
    ) -> List[HealthResponse]:
        return (
            self.session.query(HealthResponse)
            .join(HealthQuestion, HealthQuestion.id == HealthResponse.question_id)
            .filter(HealthResponse.user_id == user_id, HealthQuestion.scene_id == scene_id)
            .all()
        )

    def delete_responses_for_scene(self, scene_id: str) -> int:
        question_ids = [q.id for q in self.find_questions_by_scene(scene_id)]
        if not question_ids:
            return 0
        return (
            self.session.query(HealthResponse)
            .filter(HealthResponse.question_id.in_(question_ids))
            .delete(synchronize_session="fetch")
        )

    def check_user_completion(self, scene_id: str, user_id: str) -> Dict[str, Any]:
        """
        Check whether a user has answered every question in a survey scene.

        A scene with no questions counts as completed.

        Returns:
            Dict with completed, total_questions, answered_questions
        """
        question_ids = [q.id for q in self.find_questions_by_scene(scene_id)]
        total = len(question_ids)
        if total == 0:
            return {"completed": True, "total_questions": 0, "answered_questions": 0}
        answered = (
            self.session.query(HealthResponse)
            .filter(
                HealthResponse.question_id.in_(question_ids),
                HealthResponse.user_id == user_id,
            )
            .count()
        )
        return {
            "completed": answered >= total,
            "total_questions": total,
            "answered_questions": answered,
        }

    def get_question_ratings(self, question_id: str) -> List[int]:
        rows = (
            self.session.query(HealthResponse.rating)
            .filter(HealthResponse.question_id == question_id)
            .all()
        )
        return [rating for (rating,) in rows]

    def get_scene_results(
        self, scene_id: str, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Aggregate responses for every question in a scene.

        Args:
            scene_id: Survey scene
            user_id: If given, include this user's own rating per question

        Returns:
            One dict per question (in seq order) with question fields,
            total_responses, average and distribution (rating -> count)
        """
        questions = self.find_questions_by_scene(scene_id)
        if not questions:
            return []
        responses = (
            self.session.query(HealthResponse)
            .filter(HealthResponse.question_id.in_([q.id for q in questions]))
            .all()
        )
        by_question: Dict[str, List[HealthResponse]] = {}
        for response in responses:
            by_question.setdefault(response.question_id, []).append(response)

        results = []
        for question in questions:
            question_responses = by_question.get(question.id, [])
            total = len(question_responses)
            distribution: Dict[int, int] = {}
            for response in question_responses:
                distribution[response.rating] = distribution.get(response.rating, 0) + 1
            result = {
                "question_id": question.id,
                "thread_id": question.thread_id,
                "question": question.question,
                "description": question.description,
                "question_type": question.question_type,
                "seq": question.seq,
                "total_responses": total,
                "average": (
                    sum(r.rating for r in question_responses) / total if total else 0
                ),
                "distribution": distribution,
            }
            if user_id is not None:
                own = next((r for r in question_responses if r.user_id == user_id), None)
                result["user_rating"] = own.rating if own else None
            results.append(result)
        return results
