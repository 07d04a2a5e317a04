"""Subscription plan use cases (catalogue, stats, subscribe/cancel, admin CRUD)."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping

from marketplace.core.config import get_settings
from marketplace.core.errors import AppError, NotFoundError, ValidationFailed
from marketplace.core.utils import as_utc, utcnow
from marketplace.db.models import SubscriptionPlan, User
from marketplace.db.session import Database
from marketplace.domain.plans import validate_plan
from marketplace.query.params import ParamMap
from marketplace.query.shaper import Pagination, QueryShaper
from marketplace.repositories.plan_repository import PlanRepository
from marketplace.repositories.user_repository import UserRepository

log = logging.getLogger("marketplace.subscriptions")

NOT_FOUND = "No subscription plan found with that ID"
ACTIVE = {"active": True}


def has_active_subscription(user: User) -> bool:
    if not user.subscription_plan_id:
        return False
    end = as_utc(user.subscription_end_date)
    return end is None or end > utcnow()


class SubscriptionService:
    def __init__(self, db: Database) -> None:
        self.db = db
        self.plans = PlanRepository(db)
        self.users = UserRepository(db)
        self.settings = get_settings()

    async def list_plans(self, params: ParamMap) -> tuple[list[dict], Pagination]:
        if "active" in params:
            params = ParamMap({key: value for key, value in params.items() if key != "active"})
        shaper = QueryShaper(
            self.plans.find(ACTIVE),
            params,
            database=self.db,
            default_limit=self.settings.default_page_limit,
            max_limit=self.settings.max_page_limit,
        ).shape()
        return await shaper.execute()

    def monthly_plans(self) -> list[SubscriptionPlan]:
        return self.plans.list_active_by_monthly_price()

    def stats(self) -> dict[str, Any]:
        return self.plans.stats()

    def get(self, plan_id: int) -> SubscriptionPlan:
        plan = self.plans.get(plan_id, with_subscribers=True)
        if not plan:
            raise NotFoundError(NOT_FOUND)
        return plan

    # -------------------------- admin --------------------------
    def create(self, data: Mapping[str, Any]) -> SubscriptionPlan:
        result = validate_plan(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        return self.plans.create(result.value)

    def update(self, plan_id: int, data: Mapping[str, Any]) -> SubscriptionPlan:
        result = validate_plan(data, partial=True)
        if not result.ok:
            raise ValidationFailed(result.errors)
        plan = self.plans.update(plan_id, result.value)
        if not plan:
            raise NotFoundError(NOT_FOUND)
        return plan

    def delete(self, plan_id: int) -> None:
        if not self.plans.get(plan_id):
            raise NotFoundError(NOT_FOUND)
        if self.plans.subscriber_count(plan_id) > 0:
            raise AppError("Cannot delete plan with active subscribers", 400)
        self.plans.delete(plan_id)

    # -------------------------- members --------------------------
    def subscribe(self, plan_id: int, *, user: User) -> tuple[SubscriptionPlan, User]:
        plan = self.plans.get(plan_id)
        if not plan:
            raise NotFoundError(NOT_FOUND)
        if not plan.active:
            raise AppError("This plan is no longer active", 400)
        if has_active_subscription(user):
            raise AppError("You already have an active subscription", 400)
        start = utcnow()
        end = start + timedelta(days=plan.duration)
        updated = self.users.set_subscription(user.id, plan.id, start, end)
        log.info("User %s subscribed to plan %s until %s", user.id, plan.id, end.isoformat())
        return plan, updated

    def cancel(self, *, user: User) -> None:
        if not user.subscription_plan_id:
            raise AppError("You do not have an active subscription", 400)
        self.users.set_subscription(user.id, None, None, None)
        log.info("User %s cancelled subscription", user.id)
