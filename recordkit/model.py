from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncEngine

from .database import Connection
from .errors import ConfigurationError, FormatError, MissingIdentifierError
from .joins import EqualityJoin, Join, RawJoin, coerce_join
from .utils.logging_utils import get_logger, log_context

Record = Dict[str, Any]
Hook = Callable[[Record], Optional[Awaitable[None]]]
CustomFilter = Callable[[Any, Any], Optional[Awaitable[None]]]

_OPTION_ALIASES = {
    "tableName": "table_name",
    "idAttribute": "id_attribute",
    "customFilters": "custom_filters",
    "beforeInsert": "before_insert",
    "afterInsert": "after_insert",
    "beforeUpdate": "before_update",
    "afterUpdate": "after_update",
}

_SENSITIVE_TOKENS = ("password", "secret", "token", "otp", "passcode", "credential")
_SENSITIVE_KEYS = re.compile(r"(^|_)(api|access|private|signing|auth)_?key$")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _sanitize_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        lower = str(key).lower()
        if any(token in lower for token in _SENSITIVE_TOKENS) or _SENSITIVE_KEYS.search(lower):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = _serialize_value(value)
    return sanitized


async def _settle(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _discard(awaitables: List[Any]) -> None:
    """Close coroutines and cancel futures that will never be awaited."""
    for pending in awaitables:
        if inspect.iscoroutine(pending):
            pending.close()
        elif isinstance(pending, asyncio.Future):
            pending.cancel()


async def _gather_filters(awaitables: List[Any]) -> None:
    tasks = [asyncio.ensure_future(pending) for pending in awaitables]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


@dataclass(frozen=True)
class ModelOptions:
    """Validated, immutable configuration of a :class:`Model`."""

    connection: Callable[[str], Any]
    table_name: str
    columns: Tuple[str, ...] = ()
    joins: Tuple[Join, ...] = ()
    id_attribute: str = "id"
    custom_filters: Mapping[str, CustomFilter] = field(default_factory=lambda: MappingProxyType({}))
    before_insert: Optional[Hook] = None
    after_insert: Optional[Hook] = None
    before_update: Optional[Hook] = None
    after_update: Optional[Hook] = None

    @classmethod
    def build(cls, options: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "ModelOptions":
        if options is None and not overrides:
            raise ConfigurationError("Options object cannot be null.")

        merged: Dict[str, Any] = {}
        for key, value in dict(options or {}).items():
            merged[_OPTION_ALIASES.get(key, key)] = value
        merged.update(overrides)

        unknown = sorted(set(merged) - {f.name for f in fields(cls)})
        if unknown:
            get_logger("model").debug("Ignoring unknown model option(s): %s", ", ".join(unknown))

        connection = merged.get("connection")
        if not connection:
            raise ConfigurationError('Property "connection" cannot be null.')
        if isinstance(connection, AsyncEngine):
            connection = Connection(connection)
        elif not callable(connection):
            raise ConfigurationError('Property "connection" must be callable with a table name.')

        table_name = merged.get("table_name")
        if not table_name:
            raise ConfigurationError('Property "table_name" cannot be null.')

        return cls(
            connection=connection,
            table_name=table_name,
            columns=tuple(merged.get("columns") or ()),
            joins=tuple(coerce_join(entry) for entry in merged.get("joins") or ()),
            id_attribute=merged.get("id_attribute") or "id",
            custom_filters=MappingProxyType(dict(merged.get("custom_filters") or {})),
            before_insert=merged.get("before_insert"),
            after_insert=merged.get("after_insert"),
            before_update=merged.get("before_update"),
            after_update=merged.get("after_update"),
        )


class Model:
    """
    Generic record access for one table.

    Subclass it to add table-specific helpers::

        class PostModel(Model):
            def find_by_title(self, title):
                return self.find({"title": title})

    ``self.knex`` is the connection, so ``self.knex("other_table")`` gives a
    query builder for any table.
    """

    def __init__(self, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        self.options = ModelOptions.build(options, **kwargs)
        self.knex = self.options.connection
        self.table_name = self.options.table_name
        self.columns = self.options.columns
        self.joins = self.options.joins
        self.id_attribute = self.options.id_attribute
        self.custom_filters = self.options.custom_filters
        self.logger = get_logger("model")

    def query(self):
        """Return a fresh query builder for this model's table."""
        return self.knex(self.table_name)

    def _context(self, action: str) -> Dict[str, Any]:
        return {"model": type(self).__name__, "table": self.table_name, "action": action}

    async def _run_hook(self, name: str, record: Record) -> None:
        hook = getattr(self.options, name)
        if hook is None:
            return
        await _settle(hook(record))

    @staticmethod
    def _apply_join(query: Any, join: Join) -> None:
        if isinstance(join, RawJoin):
            query.join_raw(join.clause)
        elif isinstance(join, EqualityJoin):
            query.join(join.table, join.first, join.second)
        else:
            raise FormatError("Unrecognized join format.")

    async def count(self, column: str = "*") -> int:
        with log_context(**self._context("count")):
            value = await self.query().count(column)
            self.logger.debug("Counted %s column=%s value=%s", self.table_name, column, value)
            return value

    async def find(self, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        """
        Select rows matching ``filters``.

        Keys with a custom filter hand ``(value, query)`` to that filter; every
        other key becomes ``<table>.<key> = value``. Custom filters run
        concurrently and all finish before the query executes.
        """

        filters = dict(filters or {})
        with log_context(**self._context("find")):
            query = self.query()
            query.select(list(self.columns) or [f"{self.table_name}.*"])

            for entry in self.joins:
                self._apply_join(query, coerce_join(entry))

            pending = []
            try:
                for key, value in filters.items():
                    custom = self.custom_filters.get(key)
                    if not callable(custom):
                        query.where(f"{self.table_name}.{key}", value)
                        continue
                    result = custom(value, query)
                    if inspect.isawaitable(result):
                        pending.append(result)
            except BaseException:
                _discard(pending)
                raise

            if pending:
                await _gather_filters(pending)

            rows = await query.execute()
            self.logger.debug(
                "Found %s rows in %s filters=%s",
                len(rows),
                self.table_name,
                _sanitize_payload(filters),
            )
            return rows

    async def find_by_id(self, id: Any) -> Optional[Record]:
        rows = await self.find({self.id_attribute: id})
        return rows[0] if rows else None

    async def insert(self, record: Record) -> Optional[Record]:
        """
        Persist ``record`` and return the row as stored.

        ``before_insert`` may change what gets written; ``after_insert`` only
        touches the returned dict.
        """

        with log_context(**self._context("insert")):
            try:
                await self._run_hook("before_insert", record)
                self.logger.info(
                    "Inserting into %s attributes=%s",
                    self.table_name,
                    _sanitize_payload(record),
                )

                ids = await self.query().insert(record, returning=self.id_attribute)
                new_id = ids[0] if ids else None
                saved = await self.find_by_id(new_id) if new_id is not None else None

                if saved is None:
                    self.logger.warning("Inserted row in %s could not be read back id=%s", self.table_name, new_id)
                    return None

                await self._run_hook("after_insert", saved)
                self.logger.info("Inserted into %s %s=%s", self.table_name, self.id_attribute, new_id)
                return saved
            except Exception:
                self.logger.exception("Failed to insert into %s", self.table_name)
                raise

    async def update(self, record: Record) -> Optional[Record]:
        if not record.get(self.id_attribute):
            raise MissingIdentifierError("Error updating object: Missing ID field")

        id = record[self.id_attribute]
        with log_context(**self._context("update")):
            try:
                await self._run_hook("before_update", record)
                self.logger.info(
                    "Updating %s %s=%s attributes=%s",
                    self.table_name,
                    self.id_attribute,
                    id,
                    _sanitize_payload(record),
                )

                await self.query().where(self.id_attribute, id).update(record)
                updated = await self.find_by_id(id)

                if updated is None:
                    self.logger.warning("Updated row in %s could not be read back id=%s", self.table_name, id)
                    return None

                await self._run_hook("after_update", updated)
                return updated
            except Exception:
                self.logger.exception("Failed to update %s %s=%s", self.table_name, self.id_attribute, id)
                raise

    async def upsert(self, record: Record) -> Optional[Record]:
        if record.get(self.id_attribute):
            return await self.update(record)
        return await self.insert(record)

    async def remove(self, id: Any) -> bool:
        """Delete rows whose identifier equals ``id``; ``True`` even if none matched."""

        if not id:
            raise MissingIdentifierError(f'Error removing object: Missing "{self.id_attribute}" field')

        with log_context(**self._context("remove")):
            try:
                deleted = await self.query().where(self.id_attribute, id).delete()
                self.logger.info("Removed from %s %s=%s rows=%s", self.table_name, self.id_attribute, id, deleted)
                return True
            except Exception:
                self.logger.exception("Failed to remove from %s %s=%s", self.table_name, self.id_attribute, id)
                raise
