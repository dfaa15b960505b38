"""
Composite identifier codec.

New Relic condition ids are only unique within their policy, so resources
are addressed by ``"<policy_id>:<condition_id>"``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from nrprovider.core.exceptions import MalformedIdentifierException

ID_SEPARATOR = ":"

_INTEGER = re.compile(r"-?[0-9]+")


def serialize_ids(ids: Iterable[int]) -> str:
    """Join integer ids into a single opaque token."""
    return ID_SEPARATOR.join(str(int(part)) for part in ids)


def parse_ids(serialized_id: str, count: int) -> list[int]:
    """Split a token produced by :func:`serialize_ids` back into ``count`` ints.

    Raises:
        MalformedIdentifierException: The token does not hold exactly
            ``count`` integer parts.
    """
    raw_ids = serialized_id.split(ID_SEPARATOR)
    if len(raw_ids) != count:
        raise MalformedIdentifierException(
            serialized_id,
            f"expected {count} parts separated by '{ID_SEPARATOR}', got {len(raw_ids)}",
        )
    return [parse_int_id(raw_id, serialized_id) for raw_id in raw_ids]


def parse_int_id(raw_id: str, identifier: str | None = None, *, bits: int = 64) -> int:
    """Parse one decimal id, as used for composite parts and entity ids.

    The value must fit a signed integer of ``bits`` width; entity ids are
    parsed with ``bits=32``.
    """
    if not _INTEGER.fullmatch(raw_id):
        raise MalformedIdentifierException(
            raw_id if identifier is None else identifier,
            f"'{raw_id}' is not an integer",
        )
    value = int(raw_id)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise MalformedIdentifierException(
            raw_id if identifier is None else identifier,
            f"'{raw_id}' is out of range for a {bits}-bit integer",
        )
    return value
