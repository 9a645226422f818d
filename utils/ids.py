# utils/ids.py
import os
import re
from datetime import datetime, timezone
from typing import Optional

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def new_object_id() -> str:
    """24 hex chars, same shape as a Mongo ObjectId."""
    return os.urandom(12).hex()


def is_valid_object_id(value) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timezone-aware UTC; naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return to_utc(value).replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
