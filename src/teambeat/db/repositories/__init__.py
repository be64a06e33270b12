"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from teambeat.db.repositories.agreement import AgreementRepository
from teambeat.db.repositories.base import BaseRepository
from teambeat.db.repositories.board import BoardDetails, BoardRepository
from teambeat.db.repositories.card import CardRepository
from teambeat.db.repositories.column import ColumnRepository
from teambeat.db.repositories.comment import CommentRepository
from teambeat.db.repositories.health import HealthRepository
from teambeat.db.repositories.scene import SceneRepository
from teambeat.db.repositories.series import SeriesRepository
from teambeat.db.repositories.user import UserRepository
from teambeat.db.repositories.vote import VoteRepository

__all__ = [
    "AgreementRepository",
    "BaseRepository",
    "BoardDetails",
    "BoardRepository",
    "CardRepository",
    "ColumnRepository",
    "CommentRepository",
    "HealthRepository",
    "SceneRepository",
    "SeriesRepository",
    "UserRepository",
    "VoteRepository",
]
