"""Account management: self-service profile changes and admin user CRUD."""
from __future__ import annotations

from typing import Any, Mapping

from marketplace.core.config import get_settings
from marketplace.core.errors import ConflictError, NotFoundError, ValidationFailed
from marketplace.core.security import hash_password
from marketplace.db.models import USER_ROLES, User
from marketplace.db.session import Database
from marketplace.domain.users import validate_admin_user_update, validate_profile_update, validate_signup
from marketplace.query.params import ParamMap
from marketplace.query.shaper import Pagination, QueryShaper
from marketplace.repositories.user_repository import UserRepository

NOT_FOUND = "No user found with that ID"


class UserService:
    def __init__(self, db: Database) -> None:
        self.db = db
        self.users = UserRepository(db)
        self.settings = get_settings()

    async def list_users(self, params: ParamMap) -> tuple[list[dict], Pagination]:
        shaper = QueryShaper(
            self.users.find(),
            params,
            database=self.db,
            default_limit=self.settings.default_page_limit,
            max_limit=self.settings.max_page_limit,
        ).shape()
        return await shaper.execute()

    def get(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if not user:
            raise NotFoundError(NOT_FOUND)
        return user

    def _ensure_email_free(self, email: str | None, user_id: int | None = None) -> None:
        if not email:
            return
        existing = self.users.get_by_email(email)
        if existing and existing.id != user_id:
            raise ConflictError("Email already in use")

    def update_me(self, user: User, data: Mapping[str, Any]) -> User:
        result = validate_profile_update(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        self._ensure_email_free(result.value.get("email"), user.id)
        return self.users.update(user.id, result.value)

    def delete_me(self, user: User) -> None:
        self.users.update(user.id, {"active": False})
        self.users.delete_user_sessions(user.id)

    def create(self, data: Mapping[str, Any]) -> User:
        result = validate_signup(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        role = data.get("role") or "user"
        if role not in USER_ROLES:
            raise ValidationFailed(["Role is either: user, creator, or admin"])
        clean = result.value
        self._ensure_email_free(clean["email"])
        return self.users.create(
            name=clean["name"],
            email=clean["email"],
            password_hash=hash_password(clean["password"]),
            role=role,
            photo=clean.get("photo"),
            wallet_address=clean.get("wallet_address"),
        )

    def update(self, user_id: int, data: Mapping[str, Any]) -> User:
        result = validate_admin_user_update(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        self._ensure_email_free(result.value.get("email"), user_id)
        user = self.users.update(user_id, result.value)
        if not user:
            raise NotFoundError(NOT_FOUND)
        return user

    def delete(self, user_id: int) -> None:
        if not self.users.delete(user_id):
            raise NotFoundError(NOT_FOUND)
