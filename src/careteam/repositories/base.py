"""Shared data access for the care team repositories."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from src.careteam.schemas.pagination import decode_cursor, encode_cursor


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Data access only. Services own commit and rollback."""

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> None:
        self.session.add(entity)

    async def paginate_newest_first(
        self, query: Any, cursor: str | None, limit: int
    ) -> tuple[list[ModelType], str | None, bool]:
        """Keyset pagination over (created_at, id), newest first.

        Rows created in the same instant are split by id, so no row is skipped
        or repeated across pages. An unreadable cursor restarts from the top.

        Returns:
            Tuple of (items, next_cursor, has_more)
        """
        created_at = self.model.created_at  # type: ignore[attr-defined]
        row_id = self.model.id  # type: ignore[attr-defined]

        if cursor:
            try:
                after_created, after_id = decode_cursor(cursor)
            except ValueError:
                pass
            else:
                query = query.where(
                    or_(
                        created_at < after_created,
                        and_(created_at == after_created, row_id < after_id),
                    )
                )

        query = query.order_by(created_at.desc(), row_id.desc()).limit(limit + 1)
        rows = list((await self.session.execute(query)).scalars().all())

        has_more = len(rows) > limit
        items = rows[:limit]
        next_cursor = encode_cursor(items[-1].created_at, items[-1].id) if has_more else None
        return items, next_cursor, has_more
