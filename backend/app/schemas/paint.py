from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.paint import CATEGORIES, SIZES, MAX_PRICE


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PaintFields(CamelModel):
    """Field rules shared by create and update."""

    name: str | None = Field(None, min_length=2, max_length=100)
    category: str | None = None
    brand: str | None = Field(None, min_length=1, max_length=100)
    size: str | None = None
    price: float | None = Field(None, ge=0, le=MAX_PRICE)
    original_price: float | None = Field(None, ge=0, le=MAX_PRICE)
    description: str | None = Field(None, max_length=1000)
    features: list[str] | None = None
    available: bool | None = None
    featured: bool | None = None
    new_arrival: bool | None = None
    rating: float | None = Field(None, ge=0, le=5)
    review_count: int | None = Field(None, ge=0)
    stock_quantity: int | None = Field(None, ge=0)
    sku: str | None = Field(None, max_length=32)

    @field_validator("name", "brand", "sku", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        if v is not None and v not in CATEGORIES:
            raise ValueError(f"{v} is not a valid category")
        return v

    @field_validator("size")
    @classmethod
    def validate_size(cls, v):
        if v is not None and v not in SIZES:
            raise ValueError(f"{v} is not a valid size")
        return v

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        return v.upper() if v else None


class PaintCreate(PaintFields):
    name: str = Field(..., min_length=2, max_length=100)
    category: str
    brand: str = Field(..., min_length=1, max_length=100)
    size: str
    price: float = Field(..., gt=0, le=MAX_PRICE)


class PaintUpdate(PaintFields):
    price: float | None = Field(None, gt=0, le=MAX_PRICE)


class PaintResponse(CamelModel):
    id: str
    name: str
    category: str
    brand: str
    size: str
    price: float
    original_price: float | None = None
    description: str | None = None
    features: list[str] = []
    image: str | None = None
    available: bool
    featured: bool
    new_arrival: bool
    rating: float
    review_count: int
    stock_quantity: int
    sku: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Derived
    discount_percentage: int
    formatted_price: str | None = None
    formatted_original_price: str | None = None
    is_on_sale: bool
    status: str


class PaintEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: PaintResponse


class PaintListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[PaintResponse]


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class PaintSearchResponse(BaseModel):
    success: bool = True
    data: list[PaintResponse]
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BulkDeleteRequest(BaseModel):
    ids: list[str] = []


class BulkDeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_count: int


class StockAdjustment(BaseModel):
    delta: int


class RatingRequest(BaseModel):
    rating: float = Field(..., ge=0, le=5)


class PriceStats(CamelModel):
    total_value: float = 0
    average_price: float | None = None
    min_price: float | None = None
    max_price: float | None = None


class CategoryStat(CamelModel):
    category: str
    count: int
    average_price: float | None = None


class Statistics(CamelModel):
    total_products: int
    available_products: int
    featured_products: int
    new_products: int
    price_stats: PriceStats
    category_stats: list[CategoryStat]


class StatisticsResponse(BaseModel):
    success: bool = True
    data: Statistics


class PriceListItem(BaseModel):
    id: str
    name: str
    category: str
    brand: str
    size: str
    price: float
    description: str | None = None


class PriceListResponse(CamelModel):
    last_updated: datetime
    paints: dict[str, list[PriceListItem]]


def parse_features(value: Any) -> list[str]:
    """Split a comma-separated features string into trimmed tags."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [f.strip() for f in str(value).split(",") if f.strip()]
