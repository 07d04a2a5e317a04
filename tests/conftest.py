"""
Shared fixtures: a throw-away SQLite database per test and small factories
for users, NFTs and subscription plans.
"""
from __future__ import annotations

import itertools

import pytest

from marketplace.core import config as core_config
from marketplace.core import rate_limiter
from marketplace.core.security import hash_password
from marketplace.db.session import Database
from marketplace.repositories.nft_repository import NFTRepository
from marketplace.repositories.plan_repository import PlanRepository
from marketplace.repositories.user_repository import UserRepository

PASSWORD = "correct-horse-42"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Force predictable settings and clear the process-wide limiter between tests."""
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    for name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "SMTP_FROM"):
        monkeypatch.setenv(name, "")
    core_config.get_settings.cache_clear()
    rate_limiter._limiter.reset()
    yield
    core_config.get_settings.cache_clear()
    rate_limiter._limiter.reset()


@pytest.fixture()
def db(tmp_path, monkeypatch):
    db_file = tmp_path / "test.db"
    url = f"sqlite:///{db_file}"
    monkeypatch.setenv("DATABASE_URL", url)
    core_config.get_settings.cache_clear()
    database = Database(url)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)
    repo = UserRepository(db)
    password_hash = hash_password(PASSWORD)

    def _make(role: str = "user", **overrides):
        n = next(counter)
        fields = {
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "password_hash": password_hash,
            "role": role,
        }
        fields.update(overrides)
        return repo.create(**fields)

    return _make


def nft_payload(n: int, **overrides) -> dict:
    data = {
        "name": f"Test Piece {n}",
        "description": "A piece minted for tests.",
        "price": 100.0,
        "category": "art",
        "status": "listed",
        "token_id": f"TOKEN{n}",
        "contract_address": "0x" + "ab" * 20,
        "blockchain": "Ethereum",
        "image": f"https://img.example.com/{n}.png",
    }
    data.update(overrides)
    return data


@pytest.fixture()
def make_nft(db):
    counter = itertools.count(1)
    repo = NFTRepository(db)

    def _make(creator_id: int | None = None, **overrides):
        return repo.create(nft_payload(next(counter), **overrides), creator_id=creator_id)

    return _make


@pytest.fixture()
def make_plan(db):
    counter = itertools.count(1)
    repo = PlanRepository(db)

    def _make(**overrides):
        n = next(counter)
        data = {
            "name": f"Plan {n}",
            "price": 30.0,
            "duration": 30,
            "features": ["listing"],
            "max_nfts": 10,
            "commission_rate": 5.0,
            "active": True,
        }
        data.update(overrides)
        return repo.create(data)

    return _make
