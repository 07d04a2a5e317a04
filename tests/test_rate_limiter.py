from __future__ import annotations

from types import SimpleNamespace

import pytest

from marketplace.core import rate_limiter
from marketplace.core.rate_limiter import RateLimiter, RateLimitExceeded


def test_counts_down_then_rejects():
    limiter = RateLimiter()

    assert [limiter.check("ip:1", 3, 60) for _ in range(3)] == [2, 1, 0]
    with pytest.raises(RateLimitExceeded) as excinfo:
        limiter.check("ip:1", 3, 60)
    assert 0 < excinfo.value.retry_after <= 60


def test_keys_are_independent_and_reset_clears_state():
    limiter = RateLimiter()
    limiter.check("ip:1", 1, 60)

    assert limiter.check("ip:2", 1, 60) == 0
    with pytest.raises(RateLimitExceeded):
        limiter.check("ip:1", 1, 60)

    limiter.reset()
    assert limiter.check("ip:1", 1, 60) == 0


def test_window_expiry(monkeypatch):
    limiter = RateLimiter()
    clock = iter([1000.0, 1000.5, 1061.0])
    monkeypatch.setattr(rate_limiter, "time", SimpleNamespace(time=lambda: next(clock)))

    limiter.check("ip:1", 1, 60)
    with pytest.raises(RateLimitExceeded):
        limiter.check("ip:1", 1, 60)
    assert limiter.check("ip:1", 1, 60) == 0
