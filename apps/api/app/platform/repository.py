from __future__ import annotations

import uuid
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.core.database import Base


ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Id-addressed persistence adapter over a single mapped table.

    Writes are flushed, never committed; the calling service owns the
    transaction boundary.
    """

    model: ClassVar[type[Any]]
    resource: ClassVar[str] = ""
    updatable_fields: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, entity_id: uuid.UUID) -> ModelT | None:
        return self.session.get(self.model, entity_id)

    def create(self, values: dict[str, Any]) -> ModelT:
        entity = self.model(**values)
        self.session.add(entity)
        self.session.flush()
        return entity

    def update(self, entity_id: uuid.UUID, partial: dict[str, Any]) -> ModelT | None:
        entity = self.get(entity_id)
        if entity is None:
            return None
        for field_name, value in partial.items():
            if field_name not in self.updatable_fields:
                raise ValueError(f"Field '{field_name}' is not updatable on {self.resource}")
            setattr(entity, field_name, value)
        self.session.flush()
        return entity

    def delete(self, entity_id: uuid.UUID) -> bool:
        result = self.session.execute(delete(self.model).where(self.model.id == entity_id))
        return (result.rowcount or 0) > 0
