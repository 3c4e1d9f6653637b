"""
Query building for catalog listing and search.

Turns raw query-string values into SQLAlchemy filter conditions, ordering and
pagination without touching the database. Malformed numbers never raise: they
fall back to "no constraint" or to the endpoint default.
"""
import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, or_, select, func

from app.config import Config
from app.models.paint import Paint

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
# Offsets past a signed 32-bit integer overflow some drivers
MAX_OFFSET = 2**31 - 1

# API field name -> column
SORT_FIELDS = {
    "createdAt": Paint.created_at,
    "updatedAt": Paint.updated_at,
    "name": Paint.name,
    "category": Paint.category,
    "brand": Paint.brand,
    "size": Paint.size,
    "price": Paint.price,
    "originalPrice": Paint.original_price,
    "rating": Paint.rating,
    "reviewCount": Paint.review_count,
    "stockQuantity": Paint.stock_quantity,
    "available": Paint.available,
    "featured": Paint.featured,
    "newArrival": Paint.new_arrival,
    "sku": Paint.sku,
}


@dataclass
class CatalogQuery:
    """Filter conditions, ordering and optional page window for a paint query."""

    conditions: list[ColumnElement[bool]] = field(default_factory=list)
    order_by: list[Any] = field(default_factory=list)
    page: int | None = None
    limit: int | None = None

    @property
    def paginated(self) -> bool:
        return self.limit is not None

    @property
    def offset(self) -> int:
        if not self.paginated:
            return 0
        return (self.page - 1) * self.limit

    @property
    def where(self) -> ColumnElement[bool] | None:
        if not self.conditions:
            return None
        return and_(*self.conditions)

    def select(self) -> Select:
        stmt = select(Paint)
        if self.conditions:
            stmt = stmt.where(*self.conditions)
        stmt = stmt.order_by(*self.order_by)
        if self.paginated:
            stmt = stmt.offset(self.offset).limit(self.limit)
        return stmt

    def count(self) -> Select:
        stmt = select(func.count()).select_from(Paint)
        if self.conditions:
            stmt = stmt.where(*self.conditions)
        return stmt


def parse_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_bool(value: Any) -> bool | None:
    """Tri-state flag: absent -> None, "true" -> True, anything else -> False."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def text_match(term: str, columns: list) -> ColumnElement[bool]:
    """Case-insensitive substring match OR'd over the given columns."""
    return or_(*(column.icontains(term, autoescape=True) for column in columns))


def ordering(sort: str | None, direction: str, default_sort: str) -> list:
    column = SORT_FIELDS.get(sort or "")
    if column is None:
        column = SORT_FIELDS[default_sort]
    primary = column.desc() if direction == "desc" else column.asc()
    # Record id keeps the ordering total, so pages never overlap
    return [primary, Paint.id.asc()]


def build_listing_query(
    category: str | None = None,
    featured: str | None = None,
    search: str | None = None,
    sort: str | None = None,
    order: str | None = None,
) -> CatalogQuery:
    """Simple catalog listing: no pagination, newest first by default."""
    conditions = []

    if category and category != "all":
        conditions.append(Paint.category == category)

    featured_flag = parse_bool(featured)
    if featured_flag is not None:
        conditions.append(Paint.featured == featured_flag)

    if search:
        conditions.append(text_match(search, [Paint.name, Paint.brand, Paint.description, Paint.category]))

    return CatalogQuery(
        conditions=conditions,
        order_by=ordering(sort, _direction(order, "desc"), "createdAt"),
    )


def build_search_query(
    query: str | None = None,
    min_price: str | None = None,
    max_price: str | None = None,
    categories: str | None = None,
    sizes: str | None = None,
    available: str | None = None,
    featured: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> CatalogQuery:
    """Advanced search: every filter group AND'ed, paginated, name ascending by default."""
    conditions = []

    if query:
        conditions.append(text_match(query, [Paint.name, Paint.brand, Paint.description]))

    low = parse_float(min_price)
    if low is not None:
        conditions.append(Paint.price >= low)
    high = parse_float(max_price)
    if high is not None:
        conditions.append(Paint.price <= high)

    category_list = split_list(categories)
    if category_list:
        conditions.append(Paint.category.in_(category_list))

    size_list = split_list(sizes)
    if size_list:
        conditions.append(Paint.size.in_(size_list))

    available_flag = parse_bool(available)
    if available_flag is not None:
        conditions.append(Paint.available == available_flag)

    featured_flag = parse_bool(featured)
    if featured_flag is not None:
        conditions.append(Paint.featured == featured_flag)

    page_number = parse_int(page, DEFAULT_PAGE)
    if page_number < 1:
        page_number = DEFAULT_PAGE
    page_size = parse_int(limit, DEFAULT_LIMIT)
    if page_size < 1:
        page_size = DEFAULT_LIMIT
    page_size = min(page_size, Config.MAX_PAGE_SIZE)
    page_number = min(page_number, MAX_OFFSET // page_size + 1)

    return CatalogQuery(
        conditions=conditions,
        order_by=ordering(sort_by, _direction(sort_order, "asc"), "name"),
        page=page_number,
        limit=page_size,
    )


def _direction(order: str | None, default: str) -> str:
    """Only an explicit "desc" sorts descending once an order is given."""
    if order is None or order == "":
        return default
    return "desc" if order == "desc" else "asc"
