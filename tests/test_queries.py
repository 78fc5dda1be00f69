"""Tests for the shop directory query builder."""
from __future__ import annotations

import pytest

from massagebook.errors import ValidationFailed
from massagebook.models import Shop
from massagebook.queries import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, build_shop_query


def _names(params):
    return [shop.name for shop in params.apply(Shop.query).order_by(*params.order_by).all()]


def test_defaults():
    params = build_shop_query({})

    assert params.page == 1
    assert params.limit == DEFAULT_PAGE_SIZE
    assert params.fields is None
    assert params.filters == []


def test_comparison_operators(make_shop):
    make_shop(name="Early", open_time="08:00")
    make_shop(name="Middle", open_time="10:00")
    make_shop(name="Late", open_time="12:00")

    assert _names(build_shop_query({"open_time[gte]": "10:00", "sort": "open_time"})) == ["Middle", "Late"]
    assert _names(build_shop_query({"open_time[gt]": "10:00"})) == ["Late"]
    assert _names(build_shop_query({"open_time[lt]": "10:00"})) == ["Early"]
    assert _names(build_shop_query({"open_time[lte]": "10:00", "sort": "open_time"})) == ["Early", "Middle"]
    assert _names(build_shop_query({"name[in]": "Early,Late", "sort": "name"})) == ["Early", "Late"]
    assert _names(build_shop_query({"name": "Middle"})) == ["Middle"]


def test_multi_field_sort(make_shop):
    make_shop(name="B", open_time="09:00")
    make_shop(name="A", open_time="09:00")
    make_shop(name="C", open_time="08:00")

    assert _names(build_shop_query({"sort": "-open_time,name"})) == ["A", "B", "C"]


def test_select_keeps_id():
    params = build_shop_query({"select": "name,address"})
    assert params.fields == ("name", "address")


def test_pagination_descriptors():
    params = build_shop_query({"page": "2", "limit": "2"})

    assert params.offset == 2
    assert params.pagination(5) == {"next": {"page": 3, "limit": 2}, "prev": {"page": 1, "limit": 2}}
    assert params.pagination(4) == {"prev": {"page": 1, "limit": 2}}


def test_limit_is_capped():
    assert build_shop_query({"limit": "1000"}).limit == MAX_PAGE_SIZE


@pytest.mark.parametrize(
    "args",
    [
        {"secret": "x"},
        {"name[regex]": "x"},
        {"sort": "password"},
        {"select": "name,password"},
        {"page": "zero"},
        {"limit": "0"},
        {"user_id": "abc"},
    ],
)
def test_rejects_bad_parameters(args):
    with pytest.raises(ValidationFailed):
        build_shop_query(args)
