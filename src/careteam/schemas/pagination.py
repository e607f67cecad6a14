"""Keyset cursors and the paginated response envelope."""

import base64
import binascii
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

T = TypeVar("T")

_SEPARATOR = "|"


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    next_cursor: str | None = Field(
        default=None,
        description="Opaque cursor for the next page; absent on the last page.",
    )
    has_more: bool = False


def encode_cursor(created_at: datetime, row_id: UUID) -> str:
    """Encode the (created_at, id) position of the last row on a page."""
    raw = f"{created_at.isoformat()}{_SEPARATOR}{row_id}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Inverse of encode_cursor.

    Raises:
        ValueError: If the cursor was not produced by encode_cursor.
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Invalid cursor") from e
    created_at, _, row_id = raw.partition(_SEPARATOR)
    return datetime.fromisoformat(created_at), UUID(row_id)
