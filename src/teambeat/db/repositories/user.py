"""
User repository.
"""

from typing import Optional

from sqlalchemy.orm import Session

from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import User


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def create_user(
        self,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        is_admin: bool = False,
    ) -> User:
        """
        Create a user. Emails are stored lower-cased.

        Args:
            email: Login email
            password_hash: bcrypt hash of the password
            name: Display name
            is_admin: Whether the user is a site admin

        Returns:
            Created User
        """
        return self.create(
            email=email.strip().lower(),
            password_hash=password_hash,
            name=name,
            is_admin=is_admin,
        )

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.get(user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email (case-insensitive).

        Args:
            email: Login email

        Returns:
            User instance or None
        """
        return (
            self.session.query(User)
            .filter(User.email == email.strip().lower())
            .first()
        )

    def update_password(self, user_id: str, password_hash: str) -> Optional[User]:
        return self.update(user_id, password_hash=password_hash)

    def set_verification_secret(self, user_id: str, secret: Optional[str]) -> Optional[User]:
        return self.update(user_id, email_verification_secret=secret)

    def mark_email_verified(self, user_id: str) -> Optional[User]:
        return self.update(
            user_id, email_verified=True, email_verification_secret=None
        )
