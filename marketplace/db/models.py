"""SQLAlchemy models for the marketplace collections."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .session import Base

USER_ROLES = ("user", "creator", "admin")
NFT_CATEGORIES = ("art", "music", "video", "collectible", "gaming", "meme", "other")
NFT_STATUSES = ("listed", "unlisted", "sold", "secret")
BLOCKCHAINS = ("Ethereum", "Polygon", "Binance", "Solana")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    photo = Column(String(255), default="default.jpg", nullable=False)
    role = Column(String(16), default="user", nullable=False)
    password_hash = Column(Text, nullable=False)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    wallet_address = Column(String(42), nullable=True)
    subscription_plan_id = Column(Integer, ForeignKey("subscription_plans.id", ondelete="SET NULL"), nullable=True)
    subscription_start_date = Column(DateTime(timezone=True), nullable=True)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    revision = Column(Integer, nullable=False)

    subscription_plan = relationship("SubscriptionPlan", back_populates="subscribers")
    sessions = relationship("UserSession", back_populates="user", cascade="all,delete-orphan")

    __mapper_args__ = {"version_id_col": revision}


class NFT(Base):
    __tablename__ = "nfts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unique_identifier = Column(String(32), unique=True, nullable=False)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(120), index=True, nullable=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False, index=True)
    price_history = Column(JSON, default=list, nullable=False)
    category = Column(String(32), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(16), default="unlisted", nullable=False, index=True)
    is_secret = Column(Boolean, default=False, nullable=False, index=True)
    secret_key = Column(String(64), nullable=True)
    secret_hash = Column(String(64), nullable=True)
    token_id = Column(String(100), unique=True, nullable=False)
    contract_address = Column(String(42), nullable=False)
    blockchain = Column(String(16), nullable=False)
    metadata_ = Column("metadata", JSON, default=dict, nullable=False)
    image = Column(String(500), nullable=False)
    featured = Column(Boolean, default=False, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    ratings_average = Column(Float, default=4.5, nullable=False)
    ratings_quantity = Column(Integer, default=0, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    last_modified = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    revision = Column(Integer, nullable=False)

    creator = relationship("User", foreign_keys=[creator_id])
    owner = relationship("User", foreign_keys=[owner_id])

    __mapper_args__ = {"version_id_col": revision}


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    price = Column(Float, nullable=False)
    duration = Column(Integer, nullable=False)
    features = Column(JSON, default=list, nullable=False)
    max_nfts = Column(Integer, nullable=False)
    commission_rate = Column(Float, nullable=False)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    revision = Column(Integer, nullable=False)

    subscribers = relationship("User", back_populates="subscription_plan")

    __mapper_args__ = {"version_id_col": revision}


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")


class ResetToken(Base):
    __tablename__ = "reset_tokens"

    token_hash = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
