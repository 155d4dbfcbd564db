"""Keyset pagination cursors.

A cursor wraps the last BIGSERIAL id a client has seen. Clients treat it as
opaque; a cursor that does not decode is a request error, not page one.
"""

import base64
import binascii
import json

from src.pm_common.errors import ValidationError


def cursor_encode(last_id: int) -> str:
    payload = json.dumps({"id": last_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Return the id to resume after, or None when starting from the top."""
    if not cursor:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()))
        last_id = int(payload["id"])
    except (binascii.Error, ValueError, KeyError, TypeError) as exc:
        raise ValidationError(f"Malformed cursor: {cursor!r}") from exc
    if last_id < 0:
        raise ValidationError(f"Malformed cursor: {cursor!r}")
    return last_id
