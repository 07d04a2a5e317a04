from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from marketplace.core.errors import AppError, ForbiddenError, NotFoundError, ValidationFailed
from marketplace.db.models import NFT
from marketplace.query.params import parse_query_params
from marketplace.services.nft_service import NFTService

from conftest import nft_payload


def test_regular_users_cannot_reveal_secret_nfts(db, make_user, make_nft):
    user = make_user()
    make_nft(name="Open Piece")
    make_nft(name="Secret Piece", is_secret=True)
    service = NFTService(db)

    records, pagination = asyncio.run(service.list_nfts(parse_query_params([("is_secret", "true")]), user=user))

    assert [r["name"] for r in records] == ["Open Piece"]
    assert pagination.total_results == 1


def test_admins_see_every_nft(db, make_user, make_nft):
    admin = make_user("admin")
    make_nft(name="Open Piece")
    secret = make_nft(name="Secret Piece", is_secret=True)
    service = NFTService(db)

    records, pagination = asyncio.run(service.list_nfts(parse_query_params([]), user=admin))

    assert pagination.total_results == 2
    assert service.get(secret.id, user=admin).name == "Secret Piece"
    with pytest.raises(NotFoundError):
        service.get(secret.id, user=make_user())


def test_get_increments_views(db, make_user, make_nft):
    nft = make_nft()
    service = NFTService(db)
    user = make_user()

    service.get(nft.id, user=user)
    service.get(nft.id, user=user)

    assert service.nfts.get(nft.id).views == 2


def test_create_validates_and_assigns_creator(db, make_user):
    creator = make_user("creator")
    service = NFTService(db)

    nft = service.create(nft_payload(7), user=creator)
    assert nft.creator_id == creator.id
    assert nft.owner_id == creator.id
    assert nft.slug == "test-piece-7"

    with pytest.raises(ValidationFailed) as excinfo:
        service.create({"name": "x"}, user=creator)
    assert excinfo.value.status_code == 400


def test_only_creator_or_admin_may_update(db, make_user, make_nft):
    creator = make_user("creator")
    other = make_user("creator")
    nft = make_nft(creator_id=creator.id, price=10.0)
    service = NFTService(db)

    with pytest.raises(ForbiddenError):
        service.update(nft.id, {"price": 20.0}, user=other)

    updated = service.update(nft.id, {"price": 20.0}, user=creator)
    assert [entry["price"] for entry in updated.price_history] == [10.0, 20.0]

    assert service.update(nft.id, {"featured": True}, user=make_user("admin")).featured is True


def test_delete_requires_admin(db, make_user, make_nft):
    nft = make_nft()
    service = NFTService(db)

    with pytest.raises(ForbiddenError):
        service.delete(nft.id, user=make_user("creator"))

    admin = make_user("admin")
    service.delete(nft.id, user=admin)
    with pytest.raises(NotFoundError):
        service.delete(nft.id, user=admin)


def test_stats_cover_listed_public_nfts_only(db, make_nft):
    make_nft(category="art", price=100.0)
    make_nft(category="art", price=300.0)
    make_nft(category="music", price=50.0)
    make_nft(category="music", price=9000.0, status="unlisted")
    make_nft(category="art", price=1000.0, is_secret=True)

    stats = NFTService(db).stats()

    assert [row["category"] for row in stats] == ["art", "music"]
    assert stats[0]["num_nfts"] == 2
    assert stats[0]["avg_price"] == pytest.approx(200.0)
    assert stats[0]["max_price"] == 300.0
    assert stats[1]["total_value"] == 50.0


def test_monthly_plan_groups_by_month(db, make_nft):
    jan = make_nft(name="January Drop")
    mar = make_nft(name="March Drop")
    make_nft(name="Other Year")
    with db.session() as session:
        for nft, when in (
            (jan, datetime(2024, 1, 15, tzinfo=timezone.utc)),
            (mar, datetime(2024, 3, 2, tzinfo=timezone.utc)),
        ):
            session.execute(update(NFT).where(NFT.id == nft.id).values(created_at=when))
        session.commit()

    plan = NFTService(db).monthly_plan(2024)

    assert plan == [
        {"month": 1, "num_nfts_created": 1, "nfts": ["January Drop"]},
        {"month": 3, "num_nfts_created": 1, "nfts": ["March Drop"]},
    ]


def test_monthly_plan_rejects_out_of_range_years(db):
    with pytest.raises(AppError) as excinfo:
        NFTService(db).monthly_plan(1800)
    assert excinfo.value.status_code == 400


def test_curated_lists_return_five_sorted_items(db, make_nft):
    for price in (10.0, 70.0, 30.0, 90.0, 50.0, 20.0, 80.0):
        make_nft(price=price)

    top = NFTService(db).curated("top-expensive")

    assert [r["price"] for r in top] == [90.0, 80.0, 70.0, 50.0, 30.0]


def test_verify_secret(db, make_nft):
    nft = make_nft(is_secret=True)
    service = NFTService(db)

    assert service.verify_secret(nft.id, nft.secret_key) is True
    assert service.verify_secret(nft.id, "guess") is False
