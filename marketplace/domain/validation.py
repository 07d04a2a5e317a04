"""Tagged validation results returned by the domain validators."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union
from urllib.parse import urlparse

T = TypeVar("T")

ETH_ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{40}")
EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Invalid:
    errors: list[str]
    ok: bool = field(default=False, init=False)


ValidationResult = Union[Valid[T], Invalid]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_eth_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ETH_ADDRESS_PATTERN.fullmatch(value))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.fullmatch(value))


class Checker:
    """Accumulates error messages for one payload."""

    def __init__(self, data: dict, *, partial: bool) -> None:
        self.data = data
        self.partial = partial
        self.errors: list[str] = []

    def present(self, key: str) -> bool:
        return key in self.data and self.data[key] is not None

    def require(self, key: str, message: str) -> bool:
        """True when the key should be checked further."""
        if self.present(key):
            return True
        if not self.partial:
            self.errors.append(message)
        return False

    def check(self, condition: bool, message: str) -> None:
        if not condition:
            self.errors.append(message)

    def result(self, value: Any) -> ValidationResult:
        if self.errors:
            return Invalid(self.errors)
        return Valid(value)
