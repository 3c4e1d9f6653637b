"""
Catalog service - CRUD, stock, ratings and statistics over the paints table.

Every failure surfaces as an AppException; nothing is retried here.
"""
import logging
import math
import uuid
from typing import Any

from fastapi import Depends, UploadFile
from pydantic import BaseModel, ValidationError
from sqlalchemy import case, delete, exists, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Config
from app.db.database import get_session
from app.errors import ErrorType
from app.exceptions import AppException
from app.models.paint import Paint, generate_sku
from app.schemas.paint import PaintCreate, PaintUpdate
from app.services.query_builder import CatalogQuery, parse_float
from app.services.storage import ImageStorage, get_storage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "category", "brand", "size", "price")
NULLABLE_FIELDS = {"original_price", "description"}


def parse_paint_id(paint_id: Any) -> str | None:
    try:
        return str(uuid.UUID(str(paint_id)))
    except (TypeError, ValueError, AttributeError):
        return None


def validate_fields(model: type[BaseModel], fields: dict) -> dict:
    """Run field rules and return only the fields that were supplied.

    Raises:
        AppException: VALIDATION_ERROR with one message per failing field
    """
    try:
        data = model.model_validate(fields)
    except ValidationError as e:
        messages = []
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "body"
            messages.append(f"{field}: {err['msg']}")
        raise AppException(ErrorType.VALIDATION_ERROR, "Validation error", errors=messages)
    return data.model_dump(exclude_unset=True)


def require_positive_price(value: Any) -> float:
    price = parse_float(value)
    if price is None or price <= 0:
        raise AppException(
            ErrorType.VALIDATION_ERROR,
            "Price must be a positive number",
            errors=["price: Price must be a positive number"]
        )
    return price


class CatalogService:
    def __init__(self, session: AsyncSession, storage: ImageStorage):
        self.session = session
        self.storage = storage

    # Reads

    async def list_paints(self, query: CatalogQuery) -> list[Paint]:
        result = await self._execute(query.select())
        return list(result.scalars().all())

    async def search_paints(self, query: CatalogQuery) -> tuple[list[Paint], dict]:
        """Run a paginated query, returning the page and its pagination block."""
        result = await self._execute(query.select())
        paints = list(result.scalars().all())
        total = (await self._execute(query.count())).scalar_one()

        pagination = {
            "total": total,
            "page": query.page,
            "limit": query.limit,
            "pages": math.ceil(total / query.limit) if query.limit else 0,
        }
        return paints, pagination

    async def get_paint(self, paint_id: Any) -> Paint:
        pid = parse_paint_id(paint_id)
        paint = await self._get(pid) if pid else None
        if paint is None:
            raise AppException(ErrorType.NOT_FOUND, "Paint not found")
        return paint

    async def featured_paints(self, limit: int = 8) -> list[Paint]:
        return await self._shelf(Paint.featured.is_(True), limit)

    async def new_arrivals(self, limit: int = 8) -> list[Paint]:
        return await self._shelf(Paint.new_arrival.is_(True), limit)

    async def on_sale(self, limit: int = 12) -> list[Paint]:
        condition = Paint.original_price.is_not(None) & (Paint.original_price > Paint.price)
        return await self._shelf(condition, limit)

    async def statistics(self) -> dict:
        totals = select(
            func.count(Paint.id),
            func.sum(case((Paint.available.is_(True), 1), else_=0)),
            func.sum(case((Paint.featured.is_(True), 1), else_=0)),
            func.sum(case((Paint.new_arrival.is_(True), 1), else_=0)),
            func.sum(Paint.price),
            func.avg(Paint.price),
            func.min(Paint.price),
            func.max(Paint.price),
        )
        by_category = (
            select(Paint.category, func.count(Paint.id), func.avg(Paint.price))
            .group_by(Paint.category)
            .order_by(Paint.category)
        )

        total, available, featured, new, total_value, average, low, high = (
            await self._execute(totals)
        ).one()
        categories = (await self._execute(by_category)).all()

        return {
            "total_products": total or 0,
            "available_products": int(available or 0),
            "featured_products": int(featured or 0),
            "new_products": int(new or 0),
            "price_stats": {
                "total_value": _to_float(total_value) or 0,
                "average_price": _to_float(average),
                "min_price": _to_float(low),
                "max_price": _to_float(high),
            },
            "category_stats": [
                {"category": category, "count": count, "average_price": _to_float(avg)}
                for category, count, avg in categories
            ],
        }

    # Writes

    async def create_paint(self, fields: dict, image: UploadFile | None = None) -> Paint:
        missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
        if missing:
            raise AppException(
                ErrorType.VALIDATION_ERROR,
                f"Missing required fields: {', '.join(missing)}",
                errors=[f"{name}: Field required" for name in missing]
            )

        values = validate_fields(PaintCreate, {**fields, "price": require_positive_price(fields["price"])})
        values["sku"] = await self._assign_sku(values)

        image_path = await self.storage.save(image) if image else None
        paint = Paint(**values, image=image_path)

        try:
            self.session.add(paint)
            await self.session.commit()
            await self.session.refresh(paint)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.storage.delete(image_path)
            raise self._write_error("create", e)

        logger.info(f"Created paint {paint.id} ({paint.sku})")
        return paint

    async def update_paint(self, paint_id: Any, fields: dict, image: UploadFile | None = None) -> Paint:
        paint = await self.get_paint(paint_id)

        if "price" in fields:
            fields = {**fields, "price": require_positive_price(fields["price"])}
        values = validate_fields(PaintUpdate, fields)
        values.pop("sku", None)
        values = {k: v for k, v in values.items() if v is not None or k in NULLABLE_FIELDS}

        old_image = paint.image
        new_image = await self.storage.save(image) if image else None
        if new_image:
            values["image"] = new_image

        try:
            for key, value in values.items():
                setattr(paint, key, value)
            await self.session.commit()
            await self.session.refresh(paint)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.storage.delete(new_image)
            raise self._write_error("update", e)

        # Old file goes only once the new reference is committed
        if new_image and old_image:
            self.storage.delete(old_image)

        logger.info(f"Updated paint {paint.id}: {sorted(values)}")
        return paint

    async def delete_paint(self, paint_id: Any):
        paint = await self.get_paint(paint_id)
        image_path = paint.image

        try:
            await self.session.delete(paint)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._write_error("delete", e)

        self.storage.delete(image_path)
        logger.info(f"Deleted paint {paint_id}")

    async def bulk_delete(self, ids: list[Any]) -> int:
        """Delete every paint in ``ids`` and return how many were removed."""
        if not ids:
            raise AppException(ErrorType.VALIDATION_ERROR, "No paint IDs provided")

        valid_ids = [pid for pid in (parse_paint_id(i) for i in ids) if pid]
        if not valid_ids:
            return 0

        try:
            images = (
                await self.session.execute(select(Paint.image).where(Paint.id.in_(valid_ids)))
            ).scalars().all()
            result = await self.session.execute(
                delete(Paint).where(Paint.id.in_(valid_ids)).execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._write_error("bulk delete", e)

        for image_path in images:
            self.storage.delete(image_path)

        logger.info(f"Bulk deleted {result.rowcount} paints")
        return result.rowcount

    async def adjust_stock(self, paint_id: Any, delta: int) -> Paint:
        """Add ``delta`` (may be negative) to stock in one conditional UPDATE.

        Reaching zero marks the paint unavailable; rising from zero makes it
        available again.
        """
        if delta == 0:
            raise AppException(ErrorType.VALIDATION_ERROR, "Stock adjustment must be non-zero")

        pid = parse_paint_id(paint_id)
        if pid is None:
            raise AppException(ErrorType.NOT_FOUND, "Paint not found")

        new_quantity = Paint.stock_quantity + delta
        stmt = (
            update(Paint)
            .where(Paint.id == pid, new_quantity >= 0)
            # available first: MySQL applies SET clauses left to right
            .ordered_values(
                (Paint.available, case(
                    (new_quantity == 0, False),
                    (Paint.stock_quantity == 0, True),
                    else_=Paint.available,
                )),
                (Paint.stock_quantity, new_quantity),
            )
            .execution_options(synchronize_session=False)
        )

        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            paint = await self.get_paint(pid)
            logger.warning(f"Rejected stock change {delta} for paint {pid} (stock {paint.stock_quantity})")
            raise AppException(
                ErrorType.INSUFFICIENT_STOCK,
                f"Insufficient stock: {paint.stock_quantity} available, {-delta} requested"
            )

        await self.session.commit()
        return await self._get(pid, refresh=True)

    async def update_rating(self, paint_id: Any, rating: float) -> Paint:
        """Fold one rating into the running average."""
        if not 0 <= rating <= 5:
            raise AppException(
                ErrorType.VALIDATION_ERROR,
                "Rating must be between 0 and 5",
                errors=["rating: Rating must be between 0 and 5"]
            )

        pid = parse_paint_id(paint_id)
        if pid is None:
            raise AppException(ErrorType.NOT_FOUND, "Paint not found")

        stmt = (
            update(Paint)
            .where(Paint.id == pid)
            .values(
                rating=(Paint.rating * Paint.review_count + rating) / (Paint.review_count + 1),
                review_count=Paint.review_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            raise AppException(ErrorType.NOT_FOUND, "Paint not found")

        await self.session.commit()
        return await self._get(pid, refresh=True)

    # Helpers

    async def _assign_sku(self, values: dict) -> str:
        sku = values.get("sku")
        if sku:
            if await self._sku_exists(sku):
                raise AppException(ErrorType.CONFLICT, f"Paint with SKU '{sku}' already exists")
            return sku

        for _ in range(Config.SKU_MAX_ATTEMPTS):
            candidate = generate_sku(values["brand"], values["category"])
            if not await self._sku_exists(candidate):
                return candidate
            logger.warning(f"SKU collision on {candidate}, retrying")

        raise AppException(ErrorType.CONFLICT, "Could not generate a unique SKU")

    async def _sku_exists(self, sku: str) -> bool:
        result = await self._execute(select(exists().where(Paint.sku == sku)))
        return bool(result.scalar())

    async def _get(self, pid: str, refresh: bool = False) -> Paint | None:
        try:
            return await self.session.get(Paint, pid, populate_existing=refresh)
        except SQLAlchemyError as e:
            logger.error(f"Database error loading paint {pid}: {e}")
            raise AppException(ErrorType.INTERNAL_ERROR, "Failed to load paint")

    async def _shelf(self, condition, limit: int) -> list[Paint]:
        stmt = (
            select(Paint)
            .where(condition, Paint.available.is_(True))
            .order_by(Paint.created_at.desc(), Paint.id)
            .limit(max(1, min(limit, Config.MAX_PAGE_SIZE)))
        )
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise AppException(ErrorType.INTERNAL_ERROR, "Database error")

    def _write_error(self, action: str, error: SQLAlchemyError) -> AppException:
        if isinstance(error, IntegrityError):
            logger.warning(f"Integrity error on paint {action}: {error}")
            return AppException(ErrorType.CONFLICT, "Paint with this SKU already exists")
        logger.error(f"Database error on paint {action}: {error}")
        return AppException(ErrorType.INTERNAL_ERROR, f"Failed to {action} paint")


def _to_float(value) -> float | None:
    return float(value) if value is not None else None


def get_catalog_service(
    session: AsyncSession = Depends(get_session),
    storage: ImageStorage = Depends(get_storage),
) -> CatalogService:
    return CatalogService(session, storage)
