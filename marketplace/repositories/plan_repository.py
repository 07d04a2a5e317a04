"""Data access for subscription plans."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from marketplace.db.models import SubscriptionPlan, User
from marketplace.db.query import CollectionQuery
from marketplace.db.session import Database


class PlanRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    def find(self, criteria: Mapping[str, Any] | None = None) -> CollectionQuery:
        return CollectionQuery(SubscriptionPlan).find(criteria)

    def get(self, plan_id: int, *, with_subscribers: bool = False) -> Optional[SubscriptionPlan]:
        stmt = select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id)
        if with_subscribers:
            stmt = stmt.options(selectinload(SubscriptionPlan.subscribers))
        with self.db.session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def list_active_by_monthly_price(self) -> list[SubscriptionPlan]:
        monthly = SubscriptionPlan.price * 30 / SubscriptionPlan.duration
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.active.is_(True))
            .order_by(monthly, SubscriptionPlan.id)
        )
        with self.db.session() as session:
            return list(session.execute(stmt).scalars().all())

    def stats(self) -> dict[str, Any]:
        active = SubscriptionPlan.active.is_(True)
        plan_stmt = select(
            func.count(SubscriptionPlan.id),
            func.avg(SubscriptionPlan.price),
            func.min(SubscriptionPlan.price),
            func.max(SubscriptionPlan.price),
        ).where(active)
        subscriber_stmt = (
            select(func.count(User.id))
            .join(SubscriptionPlan, User.subscription_plan_id == SubscriptionPlan.id)
            .where(active)
        )
        with self.db.session() as session:
            num_plans, avg_price, min_price, max_price = session.execute(plan_stmt).one()
            subscribers = session.execute(subscriber_stmt).scalar_one()
        return {
            "num_plans": num_plans,
            "avg_price": avg_price,
            "min_price": min_price,
            "max_price": max_price,
            "total_subscribers": subscribers,
        }

    def subscriber_count(self, plan_id: int) -> int:
        stmt = select(func.count(User.id)).where(User.subscription_plan_id == plan_id)
        with self.db.session() as session:
            return session.execute(stmt).scalar_one()

    def create(self, data: Mapping[str, Any]) -> SubscriptionPlan:
        plan = SubscriptionPlan(**data)
        with self.db.session() as session:
            session.add(plan)
            session.commit()
            session.refresh(plan)
            return plan

    def update(self, plan_id: int, changes: Mapping[str, Any]) -> Optional[SubscriptionPlan]:
        with self.db.session() as session:
            plan = session.get(SubscriptionPlan, plan_id)
            if not plan:
                return None
            for key, value in changes.items():
                setattr(plan, key, value)
            session.commit()
            session.refresh(plan)
            return plan

    def delete(self, plan_id: int) -> bool:
        with self.db.session() as session:
            result = session.execute(delete(SubscriptionPlan).where(SubscriptionPlan.id == plan_id))
            session.commit()
            return result.rowcount > 0
