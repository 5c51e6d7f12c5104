from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional

from sqlalchemy import column, delete, func, insert, literal_column, select, table, text, update
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import ClauseElement, Select

from .utils.logging_utils import get_logger

_ALIAS_RE = re.compile(r"^(?P<expr>.+?)\s+as\s+(?P<alias>\w+)$", re.IGNORECASE)
_REFERENCE_RE = re.compile(r"^\w+(\.\w+)*(\.\*)?$|^\*$")


class QueryBuilder:
    """
    Mutable query under construction against a single table.

    Composition methods (``select``, ``where``, ``join``...) mutate the builder
    and return it for chaining. ``execute``, ``first``, ``count``, ``insert``,
    ``update`` and ``delete`` are coroutines that run the statement.

    Table and column names are quoted with the engine dialect's identifier
    rules. Column expressions handed to ``select`` that are not plain
    references (function calls, arithmetic) and ``join_raw`` clauses are used
    verbatim.
    """

    def __init__(self, engine: AsyncEngine, table_name: str) -> None:
        self.engine = engine
        self.table_name = table_name
        self._columns: List[Any] = []
        self._joins: List[str] = []
        self._wheres: List[ClauseElement] = []
        self._logger = get_logger("query")
        dialect = engine.dialect if engine is not None else DefaultDialect()
        self._preparer = dialect.identifier_preparer

    def quote(self, reference: str) -> str:
        """Quote each part of a dotted ``table.column`` reference; ``*`` is kept."""
        return ".".join(
            part if part == "*" else self._preparer.quote(part)
            for part in str(reference).split(".")
        )

    def _expression(self, expr: str) -> str:
        expr = expr.strip()
        return self.quote(expr) if _REFERENCE_RE.match(expr) else expr

    def _column_expr(self, expr: Any):
        """
        Turn a column expression string into a selectable element.

        ``"post.title as post_title"`` is labelled ``post_title``, ``"user.name"``
        is labelled ``name`` and ``"user.*"`` is passed through unlabelled.
        """

        if isinstance(expr, ClauseElement):
            return expr
        expr = str(expr).strip()
        match = _ALIAS_RE.match(expr)
        if match:
            return literal_column(self._expression(match.group("expr"))).label(match.group("alias"))
        if expr.endswith("*"):
            return literal_column(self._expression(expr))
        return literal_column(self._expression(expr)).label(expr.rsplit(".", 1)[-1])

    def select(self, columns: Iterable[Any]) -> "QueryBuilder":
        if isinstance(columns, str):
            columns = [columns]
        self._columns.extend(columns)
        return self

    def where(self, column_or_clause: Any, *args: Any) -> "QueryBuilder":
        """
        Add a predicate.

        ``where("user.id", 1)`` compares for equality (``None`` becomes
        ``IS NULL``), ``where("age", ">", 18)`` applies an operator,
        ``where(clause)`` accepts a SQLAlchemy expression and
        ``where({"a": 1, "b": 2})`` adds one equality per item. String
        targets are always quoted as column references.
        """

        if not args:
            if isinstance(column_or_clause, Mapping):
                for key, value in column_or_clause.items():
                    self.where(key, value)
                return self
            if not isinstance(column_or_clause, ClauseElement):
                raise TypeError("where() needs a value or a SQL expression")
            self._wheres.append(column_or_clause)
            return self

        target = literal_column(self.quote(column_or_clause))
        if len(args) == 1:
            self._wheres.append(target == args[0])
            return self
        if len(args) != 2:
            raise TypeError("where() takes a column, an optional operator and a value")

        operator, value = args
        operator = str(operator).strip()
        if operator in ("=", "=="):
            clause = target == value
        elif operator in ("!=", "<>"):
            clause = target != value
        else:
            clause = target.op(operator.upper())(value)
        self._wheres.append(clause)
        return self

    def where_in(self, column_name: str, values: Iterable[Any]) -> "QueryBuilder":
        self._wheres.append(literal_column(self.quote(column_name)).in_(list(values)))
        return self

    def where_raw(self, sql: str, **params: Any) -> "QueryBuilder":
        clause = text(sql)
        if params:
            clause = clause.bindparams(**params)
        self._wheres.append(clause)
        return self

    def join(self, table_name: str, first: str, second: str) -> "QueryBuilder":
        return self._join("JOIN", table_name, first, second)

    def left_join(self, table_name: str, first: str, second: str) -> "QueryBuilder":
        return self._join("LEFT JOIN", table_name, first, second)

    def _join(self, kind: str, table_name: str, first: str, second: str) -> "QueryBuilder":
        self._joins.append(f"{kind} {self.quote(table_name)} ON {self.quote(first)} = {self.quote(second)}")
        return self

    def join_raw(self, clause: str) -> "QueryBuilder":
        self._joins.append(clause)
        return self

    def _from_clause(self):
        return text(" ".join([self.quote(self.table_name), *self._joins]))

    def _filtered(self, stmt):
        if self._wheres:
            stmt = stmt.where(*self._wheres)
        return stmt

    def to_select(self) -> Select:
        columns = self._columns or [f"{self.table_name}.*"]
        stmt = select(*[self._column_expr(c) for c in columns]).select_from(self._from_clause())
        return self._filtered(stmt)

    def _log(self, stmt) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug("Executing %s", stmt.compile(dialect=self.engine.dialect))

    async def execute(self) -> List[Dict[str, Any]]:
        stmt = self.to_select()
        self._log(stmt)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            keys = list(result.keys())
            return [dict(zip(keys, row)) for row in result.fetchall()]

    async def first(self) -> Optional[Dict[str, Any]]:
        rows = await self.execute()
        return rows[0] if rows else None

    async def count(self, expr: str = "*") -> int:
        stmt = self._filtered(
            select(func.count(literal_column(self._expression(expr))).label("c")).select_from(self._from_clause())
        )
        self._log(stmt)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return int(result.scalar_one())

    async def insert(self, record: Mapping[str, Any], returning: Optional[str] = None) -> List[Any]:
        """
        Insert one row and return the generated identifiers.

        With ``returning`` set and a dialect that supports ``RETURNING`` the
        value of that column is returned, otherwise the cursor's ``lastrowid``.
        """

        names = list(record)
        if returning and returning not in names:
            names.append(returning)
        target = table(self.table_name, *[column(name) for name in names])
        stmt = insert(target)
        if record:
            stmt = stmt.values(dict(record))

        async with self.engine.begin() as conn:
            if returning and conn.dialect.insert_returning:
                stmt = stmt.returning(target.c[returning])
                self._log(stmt)
                result = await conn.execute(stmt)
                return [row[0] for row in result.fetchall()]
            self._log(stmt)
            result = await conn.execute(stmt)
            return [result.lastrowid]

    async def update(self, values: Mapping[str, Any]) -> int:
        target = table(self.table_name, *[column(name) for name in values])
        stmt = self._filtered(update(target).values(dict(values)))
        self._log(stmt)
        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
            return result.rowcount

    async def delete(self) -> int:
        stmt = self._filtered(delete(table(self.table_name)))
        self._log(stmt)
        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
            return result.rowcount
