"""Filter, projection, sort and pagination for the shop directory."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy.orm import Query

from .errors import ValidationFailed
from .models import Shop

RESERVED_PARAMS = ("select", "sort", "page", "limit")
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100

FILTERABLE = {
    "name": Shop.name,
    "address": Shop.address,
    "telephone": Shop.telephone,
    "open_time": Shop.open_time,
    "close_time": Shop.close_time,
    "user_id": Shop.user_id,
}
SORTABLE = dict(FILTERABLE, created_at=Shop.created_at, id=Shop.shop_id)
SELECTABLE = set(SORTABLE) - {"id"}

# name, name[gte], name[in], ...
_PARAM = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>gt|gte|lt|lte|in)\])?$")


@dataclass
class ShopQuery:
    filters: list = field(default_factory=list)
    fields: tuple[str, ...] | None = None
    order_by: list = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, query: Query) -> Query:
        for condition in self.filters:
            query = query.filter(condition)
        return query

    def pagination(self, total: int) -> dict[str, dict[str, int]]:
        result: dict[str, dict[str, int]] = {}
        if self.page * self.limit < total:
            result["next"] = {"page": self.page + 1, "limit": self.limit}
        if self.offset > 0:
            result["prev"] = {"page": self.page - 1, "limit": self.limit}
        return result


def _coerce(column, raw: str):
    if column is Shop.user_id:
        if not raw.isdigit():
            raise ValidationFailed("user_id filter must be an integer")
        return int(raw)
    return raw


def _condition(column, op: str | None, raw: str):
    if op == "in":
        return column.in_([_coerce(column, item.strip()) for item in raw.split(",") if item.strip()])
    value = _coerce(column, raw)
    if op is None:
        return column == value
    if op == "gt":
        return column > value
    if op == "gte":
        return column >= value
    if op == "lt":
        return column < value
    return column <= value


def _positive_int(raw: str | None, default: int, label: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{label} must be an integer") from None
    if value < 1:
        raise ValidationFailed(f"{label} must be at least 1")
    return value


def build_shop_query(args: Mapping[str, str]) -> ShopQuery:
    """Translate query string arguments into a ShopQuery.

    ``args`` is anything with ``items()`` and ``get()``; Flask's
    ``request.args`` is the usual source.
    """
    params = ShopQuery()

    for key, raw in args.items():
        if key in RESERVED_PARAMS:
            continue
        match = _PARAM.match(key)
        if not match or match.group("field") not in FILTERABLE:
            raise ValidationFailed(f"Cannot filter massage shops by '{key}'")
        column = FILTERABLE[match.group("field")]
        params.filters.append(_condition(column, match.group("op"), raw))

    select = (args.get("select") or "").strip()
    if select:
        fields = tuple(name.strip() for name in select.split(",") if name.strip())
        unknown = [name for name in fields if name not in SELECTABLE and name != "id"]
        if unknown:
            raise ValidationFailed(f"Cannot select field(s): {', '.join(unknown)}")
        params.fields = fields

    sort = (args.get("sort") or "").strip() or "-created_at"
    for name in (part.strip() for part in sort.split(",")):
        if not name:
            continue
        descending = name.startswith("-")
        column = SORTABLE.get(name.lstrip("-"))
        if column is None:
            raise ValidationFailed(f"Cannot sort massage shops by '{name}'")
        params.order_by.append(column.desc() if descending else column.asc())
    # Stable order across pages.
    params.order_by.append(Shop.shop_id.asc())

    params.page = _positive_int(args.get("page"), 1, "page")
    params.limit = min(MAX_PAGE_SIZE, _positive_int(args.get("limit"), DEFAULT_PAGE_SIZE, "limit"))
    return params
