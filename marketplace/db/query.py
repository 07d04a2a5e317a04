"""
Chainable collection queries over SQLAlchemy models.

A CollectionQuery is a not-yet-executed query against one model. Criteria
are Mongo-style documents::

    {"category": "art", "price": {"$gte": 100, "$lte": 500}}

They stay plain data until statement() compiles them, so a query can be
cloned, merged and counted without re-parsing anything. Field names are the
model's column names; unknown names raise UnknownFieldError and values that
cannot be cast to the column type raise CastError when the query compiles.
Fields listed in ``hidden`` (secrets, password hashes) are never addressable.
"""
from __future__ import annotations

import copy
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sqlalchemy import JSON, Select, func, inspect, select
from sqlalchemy.orm import Session

from marketplace.core.errors import AppError, CastError, UnknownFieldError
from marketplace.query.operators import LIST_OPERATORS, OPERATOR_MAP, is_operator_document

IDENTITY_FIELD = "id"
BOOKKEEPING_FIELD = "revision"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def model_fields(model) -> dict[str, Any]:
    """Map column names to the model's instrumented attributes."""
    fields = {}
    for attr in inspect(model).column_attrs:
        fields[attr.columns[0].name] = getattr(model, attr.key)
    return fields


def _cast(field: str, column, value: Any) -> Any:
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, JSON):
        raise AppError(f"Field {field} cannot be used as a filter", 400)
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type) and not (python_type is int and isinstance(value, bool)):
        return value
    text = str(value).strip()
    if python_type is bool:
        lowered = text.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise CastError(field, value)
    if python_type is int:
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise CastError(field, value) from None
            if not number.is_integer():
                raise CastError(field, value) from None
            return int(number)
    if python_type is float:
        try:
            number = float(text)
        except ValueError:
            raise CastError(field, value) from None
        if math.isnan(number) or math.isinf(number):
            raise CastError(field, value)
        return number
    if python_type is datetime:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise CastError(field, value) from None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return text


def merge_criteria(base: Mapping[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    """Combine two criteria documents; operator documents on the same field are merged."""
    merged = copy.deepcopy(dict(base))
    for key, value in extra.items():
        current = merged.get(key)
        if is_operator_document(current) and is_operator_document(value):
            current.update(copy.deepcopy(value))
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class CollectionQuery:
    """Mutable, chainable query builder for a single model."""

    def __init__(self, model, criteria: Mapping[str, Any] | None = None, *, hidden: Iterable[str] = ()) -> None:
        self.model = model
        self.hidden = frozenset(hidden)
        self.criteria: dict[str, Any] = copy.deepcopy(dict(criteria or {}))
        self.sort_fields: list[str] = []
        self.projection: list[str] | None = None
        self.excluded: list[str] = []
        self.skip_count = 0
        self.limit_count: int | None = None

    # ------------------------------ chaining ------------------------------
    def find(self, criteria: Mapping[str, Any] | None = None) -> "CollectionQuery":
        if criteria:
            self.criteria = merge_criteria(self.criteria, criteria)
        return self

    def sort(self, fields: Iterable[str]) -> "CollectionQuery":
        self.sort_fields = [f for f in fields if f and f != "-"]
        return self

    def select(self, fields: Iterable[str]) -> "CollectionQuery":
        self.projection = list(fields)
        self.excluded = []
        return self

    def exclude(self, fields: Iterable[str]) -> "CollectionQuery":
        self.projection = None
        self.excluded = list(fields)
        return self

    def skip(self, count: int) -> "CollectionQuery":
        self.skip_count = max(0, int(count))
        return self

    def limit(self, count: int | None) -> "CollectionQuery":
        self.limit_count = None if count is None else max(0, int(count))
        return self

    def clone(self) -> "CollectionQuery":
        twin = CollectionQuery(self.model, self.criteria, hidden=self.hidden)
        twin.sort_fields = list(self.sort_fields)
        twin.projection = None if self.projection is None else list(self.projection)
        twin.excluded = list(self.excluded)
        twin.skip_count = self.skip_count
        twin.limit_count = self.limit_count
        return twin

    # ------------------------------ compiling ------------------------------
    def _fields(self) -> dict[str, Any]:
        return {name: column for name, column in model_fields(self.model).items() if name not in self.hidden}

    def _column(self, fields: Mapping[str, Any], name: str):
        column = fields.get(name)
        if column is None:
            raise UnknownFieldError(name)
        return column

    def where_clauses(self) -> list:
        fields = self._fields()
        clauses = []
        for name, condition in self.criteria.items():
            column = self._column(fields, name)
            if is_operator_document(condition):
                for op, raw in condition.items():
                    method = OPERATOR_MAP.get(op)
                    if method is None:
                        raise AppError(f"Unsupported operator {op} on {name}", 400)
                    if op in LIST_OPERATORS:
                        values = raw if isinstance(raw, (list, tuple, set)) else [raw]
                        operand = [_cast(name, column, v) for v in values]
                    else:
                        operand = _cast(name, column, raw)
                    if operand is None and op in ("$eq", "$ne"):
                        clauses.append(column.is_(None) if op == "$eq" else column.is_not(None))
                    else:
                        clauses.append(getattr(column, method)(operand))
            elif isinstance(condition, (list, tuple)):
                clauses.append(column.in_([_cast(name, column, v) for v in condition]))
            elif condition is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == _cast(name, column, condition))
        return clauses

    def projected_fields(self) -> list[str]:
        fields = self._fields()
        if self.projection is not None:
            names = [IDENTITY_FIELD]
            for name in self.projection:
                self._column(fields, name)
                if name not in names:
                    names.append(name)
            return names
        for name in self.excluded:
            self._column(fields, name)
        return [name for name in fields if name not in self.excluded]

    def statement(self) -> Select:
        fields = self._fields()
        columns = [fields[name].label(name) for name in self.projected_fields()]
        stmt = select(*columns).where(*self.where_clauses())
        order = []
        for token in self.sort_fields:
            descending = token.startswith("-")
            column = self._column(fields, token[1:] if descending else token)
            order.append(column.desc() if descending else column.asc())
        if order:
            stmt = stmt.order_by(*order)
        if self.skip_count:
            stmt = stmt.offset(self.skip_count)
        if self.limit_count is not None:
            stmt = stmt.limit(self.limit_count)
        return stmt

    def count_statement(self) -> Select:
        return select(func.count()).select_from(self.model).where(*self.where_clauses())

    # ------------------------------ executing ------------------------------
    def all(self, session: Session) -> list[dict[str, Any]]:
        rows = session.execute(self.statement()).mappings().all()
        return [dict(row) for row in rows]

    def first(self, session: Session) -> dict[str, Any] | None:
        twin = self.clone().limit(1)
        rows = twin.all(session)
        return rows[0] if rows else None

    def count(self, session: Session) -> int:
        return int(session.execute(self.count_statement()).scalar_one())


def find(model, criteria: Mapping[str, Any] | None = None, *, hidden: Iterable[str] = ()) -> CollectionQuery:
    return CollectionQuery(model, hidden=hidden).find(criteria)

