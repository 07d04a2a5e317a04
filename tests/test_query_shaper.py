from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from marketplace.core.errors import UnknownFieldError
from marketplace.query import shaper as shaper_module
from marketplace.query.params import ParamMap, parse_query_params
from marketplace.query.shaper import QueryShaper
from marketplace.repositories.nft_repository import NFTRepository


def shaper_for(db, params, **kwargs) -> QueryShaper:
    if not isinstance(params, ParamMap):
        params = parse_query_params(params)
    return QueryShaper(NFTRepository(db).find(), params, database=db, **kwargs)


def test_defaults_when_page_and_limit_are_missing(db):
    shaper = shaper_for(db, []).shape()

    assert shaper.query.skip_count == 0
    assert shaper.query.limit_count == 100
    assert shaper.query.sort_fields == ["-created_at", "id"]
    assert "revision" not in shaper.query.projected_fields()


def test_sort_descending_with_ascending_tie_breaker(db, make_nft):
    make_nft(name="Alpha", price=300.0)
    make_nft(name="Beta", price=100.0)
    make_nft(name="Gamma", price=300.0)
    make_nft(name="Delta", price=200.0)

    records = asyncio.run(shaper_for(db, [("sort", "-price,name")]).shape().fetch())

    assert [r["name"] for r in records] == ["Alpha", "Gamma", "Delta", "Beta"]


def test_fields_projection_returns_only_requested_fields(db, make_nft):
    make_nft(price=150.0)

    records = asyncio.run(shaper_for(db, [("fields", "name,price")]).shape().fetch())

    assert records
    assert set(records[0]) == {"id", "name", "price"}


def test_range_filter_keeps_prices_within_bounds(db, make_nft):
    for price in (50.0, 100.0, 250.0, 500.0, 750.0):
        make_nft(price=price)

    shaper = shaper_for(db, [("price[gte]", "100"), ("price[lte]", "500")]).shape()
    records = asyncio.run(shaper.fetch())

    assert shaper.criteria == {"price": {"$gte": "100", "$lte": "500"}}
    assert sorted(r["price"] for r in records) == [100.0, 250.0, 500.0]


def test_total_count_ignores_pagination(db, make_nft):
    for _ in range(25):
        make_nft()

    shaper = shaper_for(db, [("page", "2"), ("limit", "10")]).shape()
    records, pagination = asyncio.run(shaper.execute())

    assert len(records) == 10
    assert pagination.as_dict() == {"currentPage": 2, "totalPages": 3, "totalResults": 25, "limit": 10}


def test_last_page_is_partial(db, make_nft):
    for _ in range(25):
        make_nft()

    records, pagination = asyncio.run(shaper_for(db, [("page", "3"), ("limit", "10")]).shape().execute())

    assert len(records) == 5
    assert pagination.total_pages == 3


def test_reserved_keys_never_become_filters(db):
    params = [("page", "2"), ("sort", "name"), ("limit", "5"), ("fields", "name")]
    shaper = shaper_for(db, params).shape()

    assert shaper.criteria == {}
    assert shaper.filtered_criteria == {"is_secret": {"$ne": True}}


def test_unsupported_operators_are_dropped(db):
    shaper = shaper_for(db, [("price[regex]", "9.*"), ("price[gt]", "10")]).shape()

    assert shaper.criteria == {"price": {"$gt": "10"}}


def test_filter_with_only_unsupported_operators_is_reported(db, monkeypatch):
    warnings = []
    monkeypatch.setattr(shaper_module, "log", SimpleNamespace(warning=lambda *args: warnings.append(args)))

    shaper = shaper_for(db, [("price[regex]", "9.*")]).shape()

    assert shaper.criteria == {}
    assert warnings == [("Ignoring operator %r on %r", "regex", "price")]


def test_invalid_page_and_limit_fall_back_to_defaults(db):
    shaper = shaper_for(db, [("page", "abc"), ("limit", "0")]).shape()

    assert shaper.page == 1
    assert shaper.limit == 100
    assert shaper.query.skip_count == 0


def test_oversized_page_falls_back_to_first_page(db, make_nft):
    make_nft()

    shaper = shaper_for(db, [("page", "9" * 25)]).shape()
    records, pagination = asyncio.run(shaper.execute())

    assert shaper.page == 1
    assert shaper.query.skip_count == 0
    assert len(records) == 1
    assert pagination.current_page == 1


def test_limit_is_capped(db):
    shaper = shaper_for(db, [("limit", "5000")], max_limit=1000).shape()

    assert shaper.limit == 1000
    assert shaper.query.limit_count == 1000


def test_stages_run_once_and_in_order(db):
    shaper = shaper_for(db, [])
    with pytest.raises(RuntimeError):
        shaper.sort()

    shaper.filter()
    with pytest.raises(RuntimeError):
        shaper.filter()
    with pytest.raises(RuntimeError):
        shaper.paginate()


def test_total_count_requires_all_stages(db):
    shaper = shaper_for(db, []).filter()

    with pytest.raises(RuntimeError):
        asyncio.run(shaper.get_total_count())


def test_unknown_filter_field_is_rejected(db, make_nft):
    make_nft()
    shaper = shaper_for(db, [("colour", "red")]).shape()

    with pytest.raises(UnknownFieldError):
        asyncio.run(shaper.execute())


def test_equality_filter_is_cast_to_column_type(db, make_nft):
    make_nft(featured=True)
    make_nft(featured=False)

    records, pagination = asyncio.run(shaper_for(db, [("featured", "true")]).shape().execute())

    assert pagination.total_results == 1
    assert records[0]["featured"] is True


def test_secret_nfts_are_not_listed(db, make_nft):
    make_nft(name="Public One")
    make_nft(name="Hidden One", is_secret=True)

    records, pagination = asyncio.run(shaper_for(db, []).shape().execute())

    assert [r["name"] for r in records] == ["Public One"]
    assert pagination.total_results == 1
    assert "secret_key" not in records[0]
