from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import FormatError


@dataclass(frozen=True)
class RawJoin:
    """A join clause injected verbatim, e.g. ``"JOIN post ON post.id = user.post_id"``."""

    clause: str


@dataclass(frozen=True)
class EqualityJoin:
    """An inner join against ``table`` on ``first = second``."""

    table: str
    first: str
    second: str


Join = Union[RawJoin, EqualityJoin]


def coerce_join(entry: Any) -> Join:
    """
    Normalise a configured join entry.

    Strings become :class:`RawJoin`; mappings carrying ``table``, ``first``
    and ``second`` become :class:`EqualityJoin`. Anything else is rejected.
    """

    if isinstance(entry, (RawJoin, EqualityJoin)):
        return entry
    if isinstance(entry, str):
        return RawJoin(entry)
    if isinstance(entry, Mapping):
        table = entry.get("table")
        first = entry.get("first")
        second = entry.get("second")
        if table and first and second:
            return EqualityJoin(table, first, second)
    raise FormatError("Unrecognized join format.")
