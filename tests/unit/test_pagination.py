from datetime import datetime
from uuid import uuid4

import pytest

from src.careteam.schemas.pagination import decode_cursor, encode_cursor

pytestmark = pytest.mark.unit


def test_cursor_keeps_position():
    created_at = datetime(2026, 3, 1, 9, 30, 15, 123456)
    row_id = uuid4()

    assert decode_cursor(encode_cursor(created_at, row_id)) == (created_at, row_id)


@pytest.mark.parametrize("cursor", ["not base64!!", "bm9zZXBhcmF0b3I=", ""])
def test_garbage_cursor_is_rejected(cursor):
    with pytest.raises(ValueError):
        decode_cursor(cursor)
