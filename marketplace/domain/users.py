"""User account rules."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from marketplace.db.models import USER_ROLES, User
from marketplace.domain.validation import Checker, ValidationResult, is_email, is_eth_address

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("name", "email", "photo", "wallet_address")
HIDDEN_FIELDS = ("password_hash", "password_changed_at")


def _check_password(c: Checker, data: Mapping[str, Any]) -> None:
    if c.require("password", "Please provide a password"):
        password = data["password"]
        c.check(isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH,
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if c.require("password_confirm", "Please confirm your password"):
            c.check(data["password_confirm"] == password, "Passwords are not the same!")


def _check_profile(c: Checker, clean: dict) -> None:
    if c.require("name", "Please tell us your name!"):
        if isinstance(clean["name"], str):
            clean["name"] = clean["name"].strip()
        c.check(isinstance(clean["name"], str) and bool(clean["name"]), "Please tell us your name!")
    if c.require("email", "Please provide your email"):
        if isinstance(clean["email"], str):
            clean["email"] = clean["email"].strip().lower()
        c.check(is_email(clean["email"]), "Please provide a valid email")
    if c.present("wallet_address"):
        c.check(is_eth_address(clean["wallet_address"]), "Invalid Ethereum address")
    if c.present("photo"):
        c.check(isinstance(clean["photo"], str), "Photo must be a string")


def validate_signup(data: Mapping[str, Any]) -> ValidationResult:
    clean = {key: data[key] for key in PROFILE_FIELDS if key in data}
    c = Checker(dict(data), partial=False)
    profile_checker = Checker(clean, partial=False)
    _check_profile(profile_checker, clean)
    c.errors.extend(profile_checker.errors)
    _check_password(c, data)
    if c.errors:
        return c.result(None)
    clean["password"] = data["password"]
    return c.result(clean)


def validate_profile_update(data: Mapping[str, Any]) -> ValidationResult:
    c = Checker(dict(data), partial=True)
    if "password" in data or "password_confirm" in data:
        c.check(False, "This route is not for password updates. Please use /updatePassword.")
    clean = {key: data[key] for key in PROFILE_FIELDS if key in data}
    profile_checker = Checker(clean, partial=True)
    _check_profile(profile_checker, clean)
    c.errors.extend(profile_checker.errors)
    return c.result(clean)


def validate_admin_user_update(data: Mapping[str, Any]) -> ValidationResult:
    result = validate_profile_update(data)
    if not result.ok:
        return result
    clean = dict(result.value)
    errors = []
    if "role" in data:
        if data["role"] in USER_ROLES:
            clean["role"] = data["role"]
        else:
            errors.append("Role is either: user, creator, or admin")
    if "active" in data:
        if isinstance(data["active"], bool):
            clean["active"] = data["active"]
        else:
            errors.append("active must be true or false")
    c = Checker(clean, partial=True)
    c.errors.extend(errors)
    return c.result(clean)


def validate_password_change(data: Mapping[str, Any]) -> ValidationResult:
    c = Checker(dict(data), partial=False)
    c.require("password_current", "Please provide your current password")
    _check_password(c, data)
    return c.result(dict(data))


def changed_password_after(user: User, issued_at: datetime) -> bool:
    if not user.password_changed_at:
        return False
    changed = user.password_changed_at
    if changed.tzinfo is None:
        changed = changed.replace(tzinfo=timezone.utc)
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return changed > issued_at


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "photo": user.photo,
        "role": user.role,
        "active": user.active,
        "wallet_address": user.wallet_address,
        "subscription_plan_id": user.subscription_plan_id,
        "subscription_start_date": user.subscription_start_date,
        "subscription_end_date": user.subscription_end_date,
    }
