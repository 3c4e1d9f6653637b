import math
import random
import uuid

from sqlalchemy import Column, Integer, String, Numeric, Text, Boolean, DateTime, JSON, Float, func

from app.config import Config
from app.db.database import Base

CATEGORIES = ("Interior", "Exterior", "Primer", "Varnish", "Enamel", "Others")
SIZES = ("1L", "4L", "5L", "10L", "20L", "25L", "Other")
MAX_PRICE = 1_000_000


def sku_prefix(brand: str, category: str) -> str:
    """Brand and category initials, e.g. ``RUD-IN``."""
    return f"{brand.strip()[:3].upper()}-{category.strip()[:2].upper()}"


def generate_sku(brand: str, category: str) -> str:
    """Build a SKU like ``RUD-IN-4821`` from brand and category initials."""
    return f"{sku_prefix(brand, category)}-{random.randint(1000, 9999)}"


def format_currency(amount: float | None) -> str | None:
    if amount is None:
        return None
    return f"{Config.CURRENCY} {amount:,.0f}"


class Paint(Base):
    __tablename__ = "paints"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, index=True)
    category = Column(String(20), nullable=False, index=True)
    brand = Column(String(100), nullable=False, default=Config.DEFAULT_BRAND)
    size = Column(String(10), nullable=False, default="4L")
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, index=True)
    original_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    description = Column(Text)
    features = Column(JSON, nullable=False, default=list)
    image = Column(String(500), nullable=True)

    # Flags
    available = Column(Boolean, nullable=False, default=True, index=True)
    featured = Column(Boolean, nullable=False, default=False, index=True)
    new_arrival = Column(Boolean, nullable=False, default=False, index=True)

    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    sku = Column(String(32), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_on_sale(self) -> bool:
        return bool(self.original_price) and self.original_price > self.price

    @property
    def discount_percentage(self) -> int:
        if not self.is_on_sale:
            return 0
        # Round half up, so 12.5% shows as 13%
        return math.floor((self.original_price - self.price) / self.original_price * 100 + 0.5)

    @property
    def formatted_price(self) -> str | None:
        return format_currency(self.price)

    @property
    def formatted_original_price(self) -> str | None:
        if not self.original_price:
            return None
        return format_currency(self.original_price)

    @property
    def status(self) -> str:
        if not self.available:
            return "out-of-stock"
        if self.is_on_sale:
            return "on-sale"
        if self.featured:
            return "featured"
        if self.new_arrival:
            return "new"
        return "available"

    def __repr__(self):
        return f"<Paint(id={self.id}, name='{self.name}', sku='{self.sku}')>"
