"""
NFT use cases: shaped listings, curated top-5 lists, aggregations and CRUD.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from marketplace.core.config import get_settings
from marketplace.core.errors import AppError, ForbiddenError, NotFoundError, ValidationFailed
from marketplace.db.models import NFT, User
from marketplace.db.session import Database
from marketplace.domain.nfts import validate_nft, verify_secret_key
from marketplace.query.params import ParamMap
from marketplace.query.shaper import Pagination, QueryShaper
from marketplace.repositories.nft_repository import NFTRepository

log = logging.getLogger("marketplace.nfts")

NOT_FOUND = "No NFT found with that ID"

# name -> (criteria, sort)
CURATED_LISTS: dict[str, tuple[dict[str, Any], list[str]]] = {
    "featured": ({"featured": True}, ["-created_at"]),
    "top-rated": ({}, ["-ratings_average", "-ratings_quantity"]),
    "most-viewed": ({}, ["-views"]),
    "recently-listed": ({"status": "listed"}, ["-created_at"]),
    "top-expensive": ({}, ["-price"]),
}


def is_admin(user: User | None) -> bool:
    return bool(user) and user.role == "admin"


class NFTService:
    def __init__(self, db: Database) -> None:
        self.db = db
        self.nfts = NFTRepository(db)
        self.settings = get_settings()

    async def list_nfts(self, params: ParamMap, *, user: User | None) -> tuple[list[dict], Pagination]:
        admin = is_admin(user)
        if not admin and "is_secret" in params:
            params = ParamMap({key: value for key, value in params.items() if key != "is_secret"})
        shaper = QueryShaper(
            self.nfts.find(show_all=admin),
            params,
            database=self.db,
            default_limit=self.settings.default_page_limit,
            max_limit=self.settings.max_page_limit,
        ).shape()
        return await shaper.execute()

    def curated(self, name: str) -> list[dict]:
        criteria, sort = CURATED_LISTS[name]
        return self.nfts.top(sort, criteria=criteria)

    def stats(self) -> list[dict]:
        return self.nfts.stats_by_category()

    def monthly_plan(self, year: int) -> list[dict]:
        if not 1970 <= year <= 9998:
            raise AppError(f"Invalid year: {year}", 400)
        return self.nfts.monthly_plan(year)

    def top_stats(self) -> dict[str, Any]:
        return self.nfts.top_stats()

    # -------------------------- CRUD --------------------------
    def create(self, data: Mapping[str, Any], *, user: User) -> NFT:
        result = validate_nft(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        nft = self.nfts.create(result.value, creator_id=user.id)
        log.info("NFT created id=%s creator=%s", nft.id, user.id)
        return nft

    def get(self, nft_id: int, *, user: User | None) -> NFT:
        nft = self.nfts.get(nft_id, show_all=is_admin(user))
        if not nft:
            raise NotFoundError(NOT_FOUND)
        self.nfts.increment_views(nft_id)
        return nft

    def update(self, nft_id: int, data: Mapping[str, Any], *, user: User) -> NFT:
        nft = self.nfts.get(nft_id, show_all=True)
        if not nft:
            raise NotFoundError(NOT_FOUND)
        if nft.creator_id != user.id and not is_admin(user):
            raise ForbiddenError("You do not have permission to perform this action")
        result = validate_nft(data, partial=True)
        if not result.ok:
            raise ValidationFailed(result.errors)
        return self.nfts.update(nft_id, result.value)

    def delete(self, nft_id: int, *, user: User) -> None:
        if not is_admin(user):
            raise ForbiddenError("Only administrators can delete NFTs")
        if not self.nfts.delete(nft_id):
            raise NotFoundError(NOT_FOUND)
        log.info("NFT deleted id=%s by=%s", nft_id, user.id)

    def verify_secret(self, nft_id: int, candidate: str) -> bool:
        nft = self.nfts.get(nft_id, show_all=True)
        if not nft:
            raise NotFoundError(NOT_FOUND)
        return verify_secret_key(nft, candidate)
