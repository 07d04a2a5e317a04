"""
NFT domain rules.

Validation is a plain function over the incoming payload, and everything the
service must do before persisting an NFT is collected in
prepare_nft_for_save(), which services call explicitly.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from marketplace.core.security import constant_time_equals, random_hex, sha256_hex
from marketplace.db.models import BLOCKCHAINS, NFT, NFT_CATEGORIES, NFT_STATUSES
from marketplace.db.query import merge_criteria
from marketplace.domain.slugs import slugify
from marketplace.domain.validation import (
    Checker,
    ValidationResult,
    is_eth_address,
    is_number,
    is_url,
)

ETH_TO_USD = 2500
METADATA_MAX_BYTES = 100 * 1024
HIDDEN_FIELDS = ("secret_key", "secret_hash")

WRITABLE_FIELDS = (
    "name",
    "description",
    "price",
    "category",
    "status",
    "is_secret",
    "token_id",
    "contract_address",
    "blockchain",
    "metadata",
    "image",
    "featured",
    "ratings_average",
    "ratings_quantity",
    "tags",
)


def validate_nft(data: Mapping[str, Any], *, partial: bool = False) -> ValidationResult:
    """Check an NFT payload; on success the value holds the cleaned writable fields."""
    clean = {key: data[key] for key in WRITABLE_FIELDS if key in data}
    c = Checker(clean, partial=partial)

    if c.require("name", "NFT must have a name"):
        name = clean["name"]
        if not isinstance(name, str):
            c.check(False, "Name must be a string")
        else:
            name = clean["name"] = name.strip()
            c.check(len(name) <= 100, "Name cannot be more than 100 characters")
            c.check(len(name) >= 3, "Name must be at least 3 characters")
            c.check("".join(name.split()).isalnum(), "NFT name can only contain letters, numbers and spaces")

    if c.require("description", "NFT must have a description"):
        description = clean["description"]
        if not isinstance(description, str):
            c.check(False, "Description must be a string")
        else:
            description = clean["description"] = description.strip()
            c.check(bool(description), "NFT must have a description")
            c.check(len(description) <= 500, "Description cannot be more than 500 characters")

    if c.require("price", "NFT must have a price"):
        price = clean["price"]
        if not is_number(price):
            c.check(False, "Price must be a number")
        else:
            c.check(price >= 0, "Price cannot be negative")
            c.check(abs(price * 100 - round(price * 100)) < 1e-6, "Price must be a number with up to 2 decimal places")

    if c.require("category", "NFT must belong to a category"):
        c.check(
            clean["category"] in NFT_CATEGORIES,
            "Category is either: art, music, video, collectible, gaming, meme, or other",
        )

    if c.present("status"):
        c.check(clean["status"] in NFT_STATUSES, "Status is either: listed, unlisted, sold, or secret")

    for flag in ("is_secret", "featured"):
        if c.present(flag):
            c.check(isinstance(clean[flag], bool), f"{flag} must be true or false")

    if c.require("token_id", "NFT must have a token ID"):
        token_id = clean["token_id"]
        c.check(isinstance(token_id, str) and token_id.isalnum(), "Token ID must be alphanumeric")

    if c.require("contract_address", "NFT must have a contract address"):
        c.check(is_eth_address(clean["contract_address"]), "Invalid Ethereum address")

    if c.require("blockchain", "NFT must specify blockchain"):
        c.check(clean["blockchain"] in BLOCKCHAINS, "Blockchain is either: Ethereum, Polygon, Binance, or Solana")

    if c.present("metadata"):
        metadata = clean["metadata"]
        if not isinstance(metadata, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in metadata.items()
        ):
            c.check(False, "Metadata must map strings to strings")
        else:
            c.check(len(json.dumps(metadata)) <= METADATA_MAX_BYTES, "Metadata size exceeds 100KB limit")

    if c.require("image", "NFT must have an image"):
        c.check(is_url(clean["image"]), "Invalid image URL")

    if c.present("ratings_average"):
        rating = clean["ratings_average"]
        if not is_number(rating):
            c.check(False, "Rating must be a number")
        else:
            c.check(rating >= 1, "Rating must be above 1.0")
            c.check(rating <= 5, "Rating must be below 5.0")
            clean["ratings_average"] = round(rating * 10) / 10

    if c.present("ratings_quantity"):
        quantity = clean["ratings_quantity"]
        c.check(isinstance(quantity, int) and not isinstance(quantity, bool) and quantity >= 0,
                "Ratings quantity cannot be negative")

    if c.present("tags"):
        tags = clean["tags"]
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            c.check(False, "Tags must be a list of strings")
        else:
            c.check(all(2 <= len(t) <= 20 for t in tags), "Tag must be between 2 and 20 characters")

    return c.result(clean)


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def prepare_nft_for_save(nft: NFT, *, now: datetime | None = None) -> NFT:
    """Derived fields every save needs: slug, price history, timestamps, secret material."""
    now = now or datetime.now(timezone.utc)
    nft.slug = slugify(nft.name)

    history = list(nft.price_history or [])
    if nft.price is not None and (not history or history[-1].get("price") != nft.price):
        history.append({"price": nft.price, "date": now.isoformat()})
        nft.price_history = history

    if not nft.unique_identifier:
        nft.unique_identifier = random_hex(16)

    if nft.is_secret and not nft.secret_key:
        nft.secret_key = random_hex(32)
        nft.secret_hash = sha256_hex(nft.secret_key)

    nft.last_modified = now
    return nft


def verify_secret_key(nft: NFT, candidate: str) -> bool:
    if not nft.secret_hash:
        return True
    return constant_time_equals(nft.secret_hash, sha256_hex(candidate or ""))


def visible_criteria(criteria: Mapping[str, Any] | None = None, *, show_all: bool = False) -> dict[str, Any]:
    """Hide secret NFTs unless the caller asked about them explicitly."""
    base = dict(criteria or {})
    if show_all or "is_secret" in base:
        return base
    return merge_criteria(base, {"is_secret": {"$ne": True}})


def price_change_percent(price: float, history: list[dict] | None) -> float:
    history = history or []
    if len(history) < 2:
        return 0
    initial = history[0].get("price") or 0
    if not initial:
        return 0
    return (price - initial) / initial * 100


def age_in_days(created_at: datetime | None, *, now: datetime | None = None) -> int | None:
    if created_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (now - _utc(created_at)).days


def nft_to_dict(nft: NFT, *, include_people: bool = False) -> dict[str, Any]:
    data = {
        "id": nft.id,
        "unique_identifier": nft.unique_identifier,
        "name": nft.name,
        "slug": nft.slug,
        "description": nft.description,
        "price": nft.price,
        "price_history": nft.price_history or [],
        "category": nft.category,
        "creator_id": nft.creator_id,
        "owner_id": nft.owner_id,
        "status": nft.status,
        "is_secret": nft.is_secret,
        "token_id": nft.token_id,
        "contract_address": nft.contract_address,
        "blockchain": nft.blockchain,
        "metadata": nft.metadata_ or {},
        "image": nft.image,
        "featured": nft.featured,
        "views": nft.views,
        "ratings_average": nft.ratings_average,
        "ratings_quantity": nft.ratings_quantity,
        "tags": nft.tags or [],
        "created_at": nft.created_at,
        "last_modified": nft.last_modified,
        "price_change": price_change_percent(nft.price, nft.price_history),
        "price_usd": nft.price * ETH_TO_USD,
        "age": age_in_days(nft.created_at),
    }
    if include_people:
        data["creator"] = _person(nft.creator)
        data["owner"] = _person(nft.owner)
    return data


def _person(user) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "photo": user.photo}
