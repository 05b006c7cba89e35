"""Generic repository over one mapped model with a string ``id`` primary key."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from mailcascade.domain.exceptions import ResourceNotFoundException
from mailcascade.infrastructure.persistence.database import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """get_by_id / create / update bound to a session.

    Repositories never commit; the caller owns the transaction
    (get_db_transactional in requests, ``session.begin()`` in services).
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def get_by_id(self, entity_id: str) -> ModelType | None:
        model: Any = self.model
        result = await self.db.execute(select(self.model).where(model.id == entity_id))
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Insert and return the row with server defaults loaded."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """Flush changes on obj. Rows loaded in another session are merged in.

        Raises:
            ResourceNotFoundException: obj is detached and its row is gone.
        """
        entity_id = getattr(obj, "id", None)
        if entity_id is None:
            raise ValueError(f"Cannot update {self.model.__name__} without an id")
        if object_session(obj) is not self.db.sync_session:
            if await self.get_by_id(entity_id) is None:
                raise ResourceNotFoundException(self.model.__name__, entity_id)
            obj = await self.db.merge(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj
