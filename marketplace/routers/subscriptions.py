from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from marketplace.db.models import User
from marketplace.db.session import Database
from marketplace.domain.plans import plan_to_dict
from marketplace.domain.users import user_to_dict
from marketplace.query.params import ParamMap
from marketplace.routers.deps import current_user, get_db, get_params, json_body, restrict_to, success
from marketplace.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


def get_service(db: Database = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


def _subscriber(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email, "wallet_address": user.wallet_address}


@router.get("")
async def list_plans(params: ParamMap = Depends(get_params), service: SubscriptionService = Depends(get_service)):
    records, pagination = await service.list_plans(params)
    return success(
        {"plans": records},
        results=len(records),
        total=pagination.total_results,
        pagination=pagination.as_dict(),
    )


@router.get("/monthly")
def monthly_plans(service: SubscriptionService = Depends(get_service)):
    plans = [plan_to_dict(plan) for plan in service.monthly_plans()]
    return success({"plans": plans}, results=len(plans))


@router.get("/stats")
def plan_stats(service: SubscriptionService = Depends(get_service)):
    stats = service.stats()
    return success(
        {
            "stats": {
                "numPlans": stats["num_plans"],
                "avgPrice": stats["avg_price"],
                "minPrice": stats["min_price"],
                "maxPrice": stats["max_price"],
                "totalSubscribers": stats["total_subscribers"],
            }
        }
    )


@router.post("/cancel")
def cancel_subscription(user: User = Depends(current_user), service: SubscriptionService = Depends(get_service)):
    service.cancel(user=user)
    return success(message="Subscription cancelled")


@router.post("/{plan_id}/subscribe")
def subscribe(plan_id: int, user: User = Depends(current_user), service: SubscriptionService = Depends(get_service)):
    plan, updated = service.subscribe(plan_id, user=user)
    return success({"plan": plan_to_dict(plan), "user": user_to_dict(updated)})


@router.get("/{plan_id}")
def get_plan(plan_id: int, service: SubscriptionService = Depends(get_service)):
    plan = service.get(plan_id)
    data = plan_to_dict(plan)
    data["subscribers"] = [_subscriber(user) for user in plan.subscribers]
    return success({"plan": data})


@router.post("", status_code=201)
def create_plan(
    data: dict[str, Any] = Depends(json_body),
    _admin: User = Depends(restrict_to("admin")),
    service: SubscriptionService = Depends(get_service),
):
    plan = service.create(data)
    return success({"plan": plan_to_dict(plan)})


@router.patch("/{plan_id}")
def update_plan(
    plan_id: int,
    data: dict[str, Any] = Depends(json_body),
    _admin: User = Depends(restrict_to("admin")),
    service: SubscriptionService = Depends(get_service),
):
    plan = service.update(plan_id, data)
    return success({"plan": plan_to_dict(plan)})


@router.delete("/{plan_id}", status_code=204)
def delete_plan(
    plan_id: int,
    _admin: User = Depends(restrict_to("admin")),
    service: SubscriptionService = Depends(get_service),
):
    service.delete(plan_id)
    return Response(status_code=204)
