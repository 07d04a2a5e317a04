"""Data access for users, sessions and password reset tokens."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload

from marketplace.db.models import ResetToken, User, UserSession
from marketplace.db.query import CollectionQuery
from marketplace.db.session import Database
from marketplace.domain.users import HIDDEN_FIELDS


class UserRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # -------------------------- users --------------------------
    def find(self, criteria: Mapping[str, Any] | None = None) -> CollectionQuery:
        return CollectionQuery(User, hidden=HIDDEN_FIELDS).find(criteria)

    def get(self, user_id: int) -> Optional[User]:
        with self.db.session() as session:
            stmt = select(User).where(User.id == user_id).options(selectinload(User.subscription_plan))
            return session.execute(stmt).scalar_one_or_none()

    def get_by_email(self, email: str) -> Optional[User]:
        with self.db.session() as session:
            stmt = select(User).where(User.email == (email or "").strip().lower())
            return session.execute(stmt).scalar_one_or_none()

    def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: str = "user",
        photo: str | None = None,
        wallet_address: str | None = None,
    ) -> User:
        user = User(
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            wallet_address=wallet_address,
        )
        if photo:
            user.photo = photo
        with self.db.session() as session:
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def update(self, user_id: int, changes: Mapping[str, Any]) -> Optional[User]:
        with self.db.session() as session:
            user = session.get(User, user_id)
            if not user:
                return None
            for key, value in changes.items():
                setattr(user, key, value)
            session.commit()
            session.refresh(user)
            return user

    def set_password(self, user_id: int, password_hash: str, changed_at: datetime) -> None:
        self.update(user_id, {"password_hash": password_hash, "password_changed_at": changed_at})

    def delete(self, user_id: int) -> bool:
        with self.db.session() as session:
            user = session.get(User, user_id)
            if not user:
                return False
            session.delete(user)
            session.commit()
            return True

    # -------------------------- subscriptions --------------------------
    def set_subscription(
        self, user_id: int, plan_id: int | None, start: datetime | None, end: datetime | None
    ) -> Optional[User]:
        return self.update(
            user_id,
            {"subscription_plan_id": plan_id, "subscription_start_date": start, "subscription_end_date": end},
        )

    # -------------------------- sessions --------------------------
    def create_session(self, token: str, user_id: int, expires_at: datetime) -> None:
        with self.db.session() as session:
            session.add(UserSession(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()

    def get_session(self, token: str) -> Optional[UserSession]:
        with self.db.session() as session:
            return session.get(UserSession, token)

    def delete_session(self, token: str) -> None:
        with self.db.session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    def delete_user_sessions(self, user_id: int) -> None:
        with self.db.session() as session:
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.commit()

    # -------------------------- reset tokens --------------------------
    def create_reset_token(self, token_hash: str, user_id: int, expires_at: datetime) -> None:
        with self.db.session() as session:
            session.execute(delete(ResetToken).where(ResetToken.user_id == user_id))
            session.add(ResetToken(token_hash=token_hash, user_id=user_id, expires_at=expires_at))
            session.commit()

    def pop_reset_token(self, token_hash: str) -> Optional[ResetToken]:
        with self.db.session() as session:
            entity = session.get(ResetToken, token_hash)
            if entity:
                session.delete(entity)
                session.commit()
            return entity

    def delete_reset_tokens(self, user_id: int) -> None:
        with self.db.session() as session:
            session.execute(delete(ResetToken).where(ResetToken.user_id == user_id))
            session.commit()
