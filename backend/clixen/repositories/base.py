"""Base repository for user-owned tables.

Lookups fold the ownership check into the query, so a row belonging to
someone else is indistinguishable from a missing one: both raise the
subclass's ``not_found_error``.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session

from ..database import Base
from ..exceptions import ClixenException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Subclasses set ``model_class`` and ``not_found_error``; ``id_column``
    defaults to ``id`` and ``owner_column`` to ``user_id``."""

    model_class: Type[ModelT]
    not_found_error: Type[ClixenException]
    id_column: str = "id"
    owner_column: str = "user_id"

    def __init__(self, db: Session):
        self.db = db

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        key = getattr(self.model_class, self.id_column)
        return self.db.query(self.model_class).filter(key == entity_id).first()

    def get_owned(self, entity_id: str, user_id: str) -> ModelT:
        key = getattr(self.model_class, self.id_column)
        owner = getattr(self.model_class, self.owner_column)
        entity = (
            self.db.query(self.model_class)
            .filter(key == entity_id, owner == user_id)
            .first()
        )
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity
