"""
Parameter Map construction from raw query strings.

Bracket keys nest one level (``price[gte]=100`` -> ``{"price": {"gte": "100"}}``).
Keys that start with ``$`` or contain ``.`` are dropped so a client can never
smuggle store operators or nested paths into a criteria document. Repeated
keys keep their last value unless whitelisted, in which case every value is
kept as a list.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Iterable, Iterator, Union

from fastapi import Request

log = logging.getLogger("marketplace.query")

ParamValue = Union[str, list[str], dict[str, Union[str, list[str]]]]

RESERVED_KEYS = frozenset({"page", "sort", "limit", "fields"})
POLLUTION_WHITELIST = frozenset({"price", "ratings_average", "ratings_quantity", "views", "category"})

_BRACKET = re.compile(r"^([^\[\]]+)\[([^\[\]]*)\]$")


class ParamMap(Mapping):
    """Read-only, insertion-ordered view of request parameters."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, ParamValue] | None = None) -> None:
        self._data = dict(data or {})

    def __getitem__(self, key: str) -> ParamValue:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ParamMap({self._data!r})"

    def first(self, key: str) -> str | None:
        """Return a scalar value for ``key``; for lists the last entry wins."""
        value = self._data.get(key)
        if isinstance(value, list):
            return value[-1] if value else None
        if isinstance(value, dict):
            return None
        return value


def _unsafe(key: str) -> bool:
    return not key or key.startswith("$") or "." in key


def parse_query_params(
    pairs: Iterable[tuple[str, str]],
    whitelist: Iterable[str] = POLLUTION_WHITELIST,
) -> ParamMap:
    allowed = frozenset(whitelist)
    data: dict[str, ParamValue] = {}
    for raw_key, value in pairs:
        key, sub = raw_key, None
        match = _BRACKET.match(raw_key)
        if match:
            key, sub = match.group(1), match.group(2) or None
        if _unsafe(key) or (sub is not None and _unsafe(sub)):
            log.warning("Dropping unsafe query parameter %r", raw_key)
            continue
        if sub is None:
            current = data.get(key)
            if key in allowed and isinstance(current, (str, list)):
                data[key] = (current if isinstance(current, list) else [current]) + [value]
            else:
                data[key] = value
            continue
        current = data.get(key)
        if not isinstance(current, dict):
            current = {}
            data[key] = current
        current[sub] = value
    return ParamMap(data)


def params_from_request(request: Request, whitelist: Iterable[str] = POLLUTION_WHITELIST) -> ParamMap:
    return parse_query_params(request.query_params.multi_items(), whitelist)
