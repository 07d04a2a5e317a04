"""Subscription plan rules."""
from __future__ import annotations

from typing import Any, Mapping

from marketplace.db.models import SubscriptionPlan
from marketplace.domain.validation import Checker, ValidationResult, is_number

WRITABLE_FIELDS = ("name", "price", "duration", "features", "max_nfts", "commission_rate", "active")


def validate_plan(data: Mapping[str, Any], *, partial: bool = False) -> ValidationResult:
    clean = {key: data[key] for key in WRITABLE_FIELDS if key in data}
    c = Checker(clean, partial=partial)

    if c.require("name", "A subscription plan must have a name"):
        if isinstance(clean["name"], str):
            clean["name"] = clean["name"].strip()
        c.check(isinstance(clean["name"], str) and bool(clean["name"]), "A subscription plan must have a name")
    if c.require("price", "A subscription plan must have a price"):
        c.check(is_number(clean["price"]) and clean["price"] >= 0, "Price must be a non-negative number")
    if c.require("duration", "A subscription plan must have a duration in days"):
        duration = clean["duration"]
        c.check(isinstance(duration, int) and not isinstance(duration, bool) and duration > 0,
                "Duration must be a positive number of days")
    if c.require("features", "A subscription plan must have features"):
        features = clean["features"]
        c.check(
            isinstance(features, list) and bool(features) and all(isinstance(f, str) and f for f in features),
            "A subscription plan must have features",
        )
    if c.require("max_nfts", "Please specify the maximum number of NFTs allowed"):
        max_nfts = clean["max_nfts"]
        c.check(isinstance(max_nfts, int) and not isinstance(max_nfts, bool) and max_nfts >= 0,
                "Maximum number of NFTs must be a non-negative integer")
    if c.require("commission_rate", "Please specify the commission rate"):
        rate = clean["commission_rate"]
        if not is_number(rate):
            c.check(False, "Commission rate must be a number")
        else:
            c.check(rate >= 0, "Commission rate cannot be negative")
            c.check(rate <= 100, "Commission rate cannot exceed 100%")
    if c.present("active"):
        c.check(isinstance(clean["active"], bool), "active must be true or false")

    return c.result(clean)


def monthly_price(price: float, duration: int) -> float:
    return price * 30 / duration if duration else 0.0


def plan_to_dict(plan: SubscriptionPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "price": plan.price,
        "duration": plan.duration,
        "features": plan.features or [],
        "max_nfts": plan.max_nfts,
        "commission_rate": plan.commission_rate,
        "active": plan.active,
        "monthly_price": monthly_price(plan.price, plan.duration),
    }
