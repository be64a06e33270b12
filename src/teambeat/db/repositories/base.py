"""
Base repository with common CRUD operations.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from teambeat.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic repository providing create/get/update/delete for one model."""

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Column values

        Returns:
            Created instance (flushed, so generated ids and defaults are set)
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        self.session.refresh(instance)
        return instance

    def get(self, id: str) -> Optional[ModelType]:
        """
        Get a record by primary key.

        Args:
            id: Primary key value

        Returns:
            Instance or None
        """
        return self.session.get(self.model, id)

    def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[ModelType]:
        """
        Get all records.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of instances
        """
        query = self.session.query(self.model).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def update(self, id: str, **kwargs: Any) -> Optional[ModelType]:
        """
        Update a record's fields.

        Args:
            id: Primary key value
            **kwargs: Fields to update

        Returns:
            Updated instance or None if not found
        """
        instance = self.get(id)
        if instance is None:
            return None
        for key, value in kwargs.items():
            setattr(instance, key, value)
        self.session.flush()
        self.session.refresh(instance)
        return instance

    def delete(self, id: str) -> bool:
        """
        Delete a record.

        Args:
            id: Primary key value

        Returns:
            True if a record was deleted
        """
        instance = self.get(id)
        if instance is None:
            return False
        self.session.delete(instance)
        self.session.flush()
        return True

    def count(self) -> int:
        return self.session.query(self.model).count()
