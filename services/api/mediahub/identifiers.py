"""
Canonical identifier handling.

Every entity id in the system is a uuid.UUID. Raw values coming from paths,
tokens or query strings are converted here, once, and nowhere else.
"""
import uuid
from typing import Union

from mediahub.errors import InvalidTarget

EntityId = uuid.UUID

RawId = Union[uuid.UUID, str, bytes]


def new_entity_id() -> EntityId:
    return uuid.uuid4()


def as_entity_id(value: RawId) -> EntityId:
    """Normalize ``value`` to the canonical identifier or raise InvalidTarget."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        if isinstance(value, bytes):
            return uuid.UUID(bytes=value) if len(value) == 16 else uuid.UUID(value.decode("ascii"))
        if isinstance(value, str):
            return uuid.UUID(value.strip())
    except (ValueError, UnicodeDecodeError):
        pass
    raise InvalidTarget(f"Malformed identifier: {value!r}")
