"""
Query shaping for collection listings.

A QueryShaper takes a base CollectionQuery and the request's Parameter Map
and applies four stages, exactly once and in this order:

1. filter        -- domain filters, with ``gte/gt/lte/lt`` rewritten to ``$gte`` ...
2. sort          -- ``sort=-price,name``; defaults to newest first
3. limit_fields  -- ``fields=name,price``; defaults to everything but ``revision``
4. paginate      -- ``page`` / ``limit`` with fail-safe defaults

The criteria produced by the filter stage stay addressable on the shaper
(``filtered_criteria``) so get_total_count() can issue its own count query
against the pre-pagination result set.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

from starlette.concurrency import run_in_threadpool

from marketplace.db.query import BOOKKEEPING_FIELD, IDENTITY_FIELD, CollectionQuery
from marketplace.db.session import Database
from marketplace.query.operators import to_store_operator
from marketplace.query.params import RESERVED_KEYS, ParamMap

log = logging.getLogger("marketplace.query")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT = "-created_at"
# SQLite and Postgres store offsets as signed 64-bit integers
MAX_OFFSET = 2**63 - 1

_STAGES = ("filter", "sort", "limit_fields", "paginate")


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_results: int
    limit: int

    def as_dict(self) -> dict[str, int]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalResults": self.total_results,
            "limit": self.limit,
        }


def _positive_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, (dict, list)):
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    return number if number >= 1 else default


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    names: list[str] = []
    for part in value.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return names


class QueryShaper:
    """Single-use filter/sort/projection/pagination pipeline for one request."""

    def __init__(
        self,
        query: CollectionQuery,
        params: Mapping[str, Any],
        *,
        database: Database | None = None,
        default_sort: str = DEFAULT_SORT,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int | None = None,
    ) -> None:
        self.query = query
        self.params = params if isinstance(params, ParamMap) else ParamMap(params)
        self.database = database
        self.default_sort = default_sort
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.criteria: dict[str, Any] = {}
        self.filtered_criteria: dict[str, Any] | None = None
        self.page = DEFAULT_PAGE
        self.limit = default_limit
        self._completed = 0

    def _enter(self, stage: str) -> None:
        expected = _STAGES[self._completed] if self._completed < len(_STAGES) else None
        if stage != expected:
            raise RuntimeError(f"Cannot run stage {stage!r}; next stage is {expected!r}")
        self._completed += 1

    # ------------------------------ stages ------------------------------
    def filter(self) -> "QueryShaper":
        self._enter("filter")
        criteria: dict[str, Any] = {}
        for key, value in self.params.items():
            if key in RESERVED_KEYS:
                continue
            if isinstance(value, Mapping):
                operators = {}
                for op, operand in value.items():
                    store_op = to_store_operator(op)
                    if store_op is None:
                        log.warning("Ignoring operator %r on %r", op, key)
                        continue
                    operators[store_op] = operand
                if operators:
                    criteria[key] = operators
            else:
                criteria[key] = value
        self.criteria = criteria
        self.query.find(criteria)
        self.filtered_criteria = dict(self.query.criteria)
        return self

    def sort(self) -> "QueryShaper":
        self._enter("sort")
        fields = _split_csv(self.params.first("sort")) or _split_csv(self.default_sort)
        if not any(f.lstrip("-") == IDENTITY_FIELD for f in fields):
            fields.append(IDENTITY_FIELD)
        self.query.sort(fields)
        return self

    def limit_fields(self) -> "QueryShaper":
        self._enter("limit_fields")
        fields = _split_csv(self.params.first("fields"))
        if fields:
            self.query.select(fields)
        else:
            self.query.exclude([BOOKKEEPING_FIELD])
        return self

    def paginate(self) -> "QueryShaper":
        self._enter("paginate")
        self.page = _positive_int(self.params.first("page"), DEFAULT_PAGE)
        limit = _positive_int(self.params.first("limit"), self.default_limit)
        if self.max_limit is not None:
            limit = min(limit, self.max_limit)
        if (self.page - 1) * limit > MAX_OFFSET:
            log.warning("Page %d is out of range, serving page %d", self.page, DEFAULT_PAGE)
            self.page = DEFAULT_PAGE
        self.limit = limit
        self.query.skip((self.page - 1) * limit).limit(limit)
        return self

    def shape(self) -> "QueryShaper":
        return self.filter().sort().limit_fields().paginate()

    # ------------------------------ execution ------------------------------
    def _require_database(self) -> Database:
        if self.database is None:
            raise RuntimeError("QueryShaper needs a database to execute queries")
        return self.database

    def _require_shaped(self) -> None:
        if self._completed < len(_STAGES):
            raise RuntimeError("QueryShaper stages have not all run")

    def count_query(self) -> CollectionQuery:
        """A fresh, unpaginated query over the filtered criteria."""
        if self.filtered_criteria is None:
            raise RuntimeError("filter() must run before counting")
        return CollectionQuery(self.query.model, self.filtered_criteria, hidden=self.query.hidden)

    def _count(self) -> int:
        with self._require_database().session() as session:
            return self.count_query().count(session)

    def _fetch(self) -> list[dict[str, Any]]:
        with self._require_database().session() as session:
            return self.query.all(session)

    async def get_total_count(self) -> Pagination:
        self._require_shaped()
        total = await run_in_threadpool(self._count)
        return Pagination(
            current_page=self.page,
            total_pages=math.ceil(total / self.limit) if self.limit else 0,
            total_results=total,
            limit=self.limit,
        )

    async def fetch(self) -> list[dict[str, Any]]:
        self._require_shaped()
        return await run_in_threadpool(self._fetch)

    async def execute(self) -> tuple[list[dict[str, Any]], Pagination]:
        """Run the page fetch and the count concurrently."""
        records, pagination = await asyncio.gather(self.fetch(), self.get_total_count())
        return records, pagination
