from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from marketplace.core.errors import AppError, NotFoundError, ValidationFailed
from marketplace.core.utils import as_utc, utcnow
from marketplace.query.params import parse_query_params
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.subscription_service import SubscriptionService


def test_listing_only_shows_active_plans(db, make_plan):
    make_plan(name="Starter")
    make_plan(name="Legacy", active=False)
    make_plan(name="Pro", price=90.0)

    records, pagination = asyncio.run(
        SubscriptionService(db).list_plans(parse_query_params([("sort", "price,name")]))
    )

    assert [r["name"] for r in records] == ["Starter", "Pro"]
    assert pagination.total_results == 2


def test_listing_ignores_client_active_filter(db, make_plan):
    make_plan(name="Live")
    make_plan(name="Retired", active=False)

    records, pagination = asyncio.run(
        SubscriptionService(db).list_plans(parse_query_params([("active", "false")]))
    )

    assert [r["name"] for r in records] == ["Live"]
    assert pagination.total_results == 1


def test_monthly_orders_by_normalised_price(db, make_plan):
    make_plan(name="Yearly", price=240.0, duration=365)
    make_plan(name="Monthly", price=30.0, duration=30)
    make_plan(name="Weekly", price=10.0, duration=7)

    names = [plan.name for plan in SubscriptionService(db).monthly_plans()]

    assert names == ["Yearly", "Monthly", "Weekly"]


def test_subscribe_sets_dates_and_blocks_second_subscription(db, make_user, make_plan):
    plan = make_plan(duration=30)
    user = make_user()
    service = SubscriptionService(db)

    _, updated = service.subscribe(plan.id, user=user)

    assert updated.subscription_plan_id == plan.id
    end = as_utc(updated.subscription_end_date)
    assert abs(end - (utcnow() + timedelta(days=30))) < timedelta(minutes=1)

    with pytest.raises(AppError) as excinfo:
        service.subscribe(plan.id, user=UserRepository(db).get(user.id))
    assert excinfo.value.status_code == 400


def test_subscribe_to_missing_or_inactive_plan(db, make_user, make_plan):
    service = SubscriptionService(db)
    user = make_user()

    with pytest.raises(NotFoundError):
        service.subscribe(999, user=user)
    with pytest.raises(AppError) as excinfo:
        service.subscribe(make_plan(active=False).id, user=user)
    assert excinfo.value.status_code == 400


def test_cancel(db, make_user, make_plan):
    service = SubscriptionService(db)
    user = make_user()
    service.subscribe(make_plan().id, user=user)

    service.cancel(user=UserRepository(db).get(user.id))
    refreshed = UserRepository(db).get(user.id)
    assert refreshed.subscription_plan_id is None

    with pytest.raises(AppError):
        service.cancel(user=refreshed)


def test_delete_blocked_while_plan_has_subscribers(db, make_user, make_plan):
    service = SubscriptionService(db)
    plan = make_plan()
    service.subscribe(plan.id, user=make_user())

    with pytest.raises(AppError) as excinfo:
        service.delete(plan.id)
    assert excinfo.value.status_code == 400

    empty = make_plan()
    service.delete(empty.id)
    with pytest.raises(NotFoundError):
        service.get(empty.id)


def test_stats_and_subscribers(db, make_user, make_plan):
    service = SubscriptionService(db)
    cheap = make_plan(price=10.0)
    make_plan(price=30.0)
    user = make_user(wallet_address="0x" + "cd" * 20)
    service.subscribe(cheap.id, user=user)

    stats = service.stats()
    assert stats["num_plans"] == 2
    assert stats["avg_price"] == pytest.approx(20.0)
    assert stats["total_subscribers"] == 1
    assert [u.email for u in service.get(cheap.id).subscribers] == [user.email]


def test_create_and_update_validate_input(db):
    service = SubscriptionService(db)

    with pytest.raises(ValidationFailed):
        service.create({"name": "Broken", "price": -1})

    plan = service.create(
        {"name": "Creator", "price": 49.0, "duration": 30, "features": ["mint"], "max_nfts": 50, "commission_rate": 2.5}
    )
    assert service.update(plan.id, {"commission_rate": 3.0}).commission_rate == 3.0
    with pytest.raises(ValidationFailed):
        service.update(plan.id, {"commission_rate": 250})
    with pytest.raises(NotFoundError):
        service.update(999, {"price": 1.0})
