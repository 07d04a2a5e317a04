from __future__ import annotations

import pytest

from marketplace.core.errors import AppError, CastError, UnknownFieldError
from marketplace.db.models import NFT, SubscriptionPlan
from marketplace.db.query import CollectionQuery, find, merge_criteria
from marketplace.domain.nfts import HIDDEN_FIELDS


def test_cast_error_on_non_numeric_comparison():
    query = find(NFT, {"price": {"$gte": "cheap"}})

    with pytest.raises(CastError) as excinfo:
        query.statement()
    assert excinfo.value.status_code == 400
    assert excinfo.value.field == "price"


def test_unknown_field_in_criteria_sort_and_projection():
    with pytest.raises(UnknownFieldError):
        find(NFT, {"colour": "red"}).statement()
    with pytest.raises(UnknownFieldError):
        find(NFT).sort(["-colour"]).statement()
    with pytest.raises(UnknownFieldError):
        find(NFT).select(["colour"]).statement()


def test_hidden_fields_are_not_addressable():
    query = CollectionQuery(NFT, {"secret_key": "abc"}, hidden=HIDDEN_FIELDS)

    with pytest.raises(UnknownFieldError):
        query.where_clauses()
    assert "secret_hash" not in CollectionQuery(NFT, hidden=HIDDEN_FIELDS).projected_fields()


def test_json_columns_cannot_be_filtered():
    with pytest.raises(AppError) as excinfo:
        find(SubscriptionPlan, {"features": "listing"}).where_clauses()
    assert excinfo.value.status_code == 400


def test_projection_always_starts_with_id():
    query = find(NFT).select(["price", "name", "price"])

    assert query.projected_fields() == ["id", "price", "name"]


def test_clone_is_independent():
    query = find(NFT, {"category": "art"}).sort(["-price"]).skip(10).limit(5)
    twin = query.clone()
    twin.find({"status": "listed"}).limit(1)

    assert query.criteria == {"category": "art"}
    assert query.limit_count == 5
    assert twin.criteria == {"category": "art", "status": "listed"}
    assert twin.sort_fields == ["-price"]
    assert twin.skip_count == 10


def test_merge_criteria_combines_operator_documents():
    merged = merge_criteria({"price": {"$gte": 1}}, {"price": {"$lte": 9}, "category": "art"})

    assert merged == {"price": {"$gte": 1, "$lte": 9}, "category": "art"}


def test_in_and_count_against_database(db, make_nft):
    make_nft(category="art")
    make_nft(category="music")
    make_nft(category="meme")

    with db.session() as session:
        query = find(NFT, {"category": {"$in": ["art", "music"]}})
        assert query.count(session) == 2
        assert find(NFT, {"category": ["meme"]}).count(session) == 1
        first = find(NFT).sort(["-id"]).select(["name"]).first(session)
    assert first == {"id": 3, "name": "Test Piece 3"}
