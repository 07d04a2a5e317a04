from __future__ import annotations

import pytest

from marketplace.query.operators import is_operator_document, to_store_operator
from marketplace.query.params import ParamMap, parse_query_params


def test_bracket_keys_nest_one_level():
    params = parse_query_params([("price[gte]", "100"), ("price[lte]", "500"), ("category", "art")])

    assert dict(params) == {"price": {"gte": "100", "lte": "500"}, "category": "art"}


def test_operator_and_dotted_keys_are_dropped():
    params = parse_query_params(
        [("$where", "1"), ("owner.email", "x@example.com"), ("price[$gt]", "1"), ("name", "Alpha")]
    )

    assert dict(params) == {"name": "Alpha"}


def test_repeated_keys_keep_last_value_unless_whitelisted():
    params = parse_query_params(
        [("sort", "price"), ("sort", "name"), ("category", "art"), ("category", "music")]
    )

    assert params["sort"] == "name"
    assert params["category"] == ["art", "music"]
    assert params.first("category") == "music"


def test_first_ignores_operator_documents():
    params = parse_query_params([("limit[gt]", "5")])

    assert params.first("limit") is None


def test_param_map_is_read_only():
    params = ParamMap({"page": "1"})

    with pytest.raises(TypeError):
        params["page"] = "2"  # type: ignore[index]


def test_request_operator_names_map_to_store_operators():
    assert to_store_operator("gte") == "$gte"
    assert to_store_operator("lt") == "$lt"
    assert to_store_operator("regex") is None
    assert is_operator_document({"$gte": 1})
    assert not is_operator_document({"gte": 1})
