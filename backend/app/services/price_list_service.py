"""
Price list - grouped view and CSV/Excel export of available paints.

The grouped view and both export formats share one query and one column
schema, so what customers see on screen matches the downloaded files.
"""
import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import pandas as pd
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Config
from app.db.database import get_session
from app.errors import ErrorType
from app.exceptions import AppException
from app.models.paint import Paint

logger = logging.getLogger(__name__)

SHEET_NAME = "Price List"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Column label -> record key, in export order
COLUMNS = {
    "Product Name": "name",
    "Category": "category",
    "Brand": "brand",
    "Size": "size",
    f"Price ({Config.CURRENCY})": "price",
    "Description": "description",
}


@dataclass
class ExportFile:
    content: bytes
    media_type: str
    filename: str


def price_cell(value: float | None):
    """Whole-number prices export as integers (4500, not 4500.0)."""
    if value is None:
        return ""
    value = float(value)
    return int(value) if value.is_integer() else value


def to_row(item: dict) -> dict:
    return {
        label: price_cell(item[key]) if key == "price" else (item[key] or "")
        for label, key in COLUMNS.items()
    }


class PriceListService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def available_items(self) -> list[dict]:
        """Available paints, projected for the price list, ordered by category then name."""
        stmt = (
            select(
                Paint.id, Paint.name, Paint.category, Paint.brand,
                Paint.size, Paint.price, Paint.description,
            )
            .where(Paint.available.is_(True))
            .order_by(Paint.category.asc(), Paint.name.asc(), Paint.id.asc())
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Database error building price list: {e}")
            raise AppException(ErrorType.INTERNAL_ERROR, "Failed to build price list")

        return [dict(row._mapping) for row in result.all()]

    async def build_grouped_view(self) -> dict:
        grouped: dict[str, list[dict]] = {}
        for item in await self.available_items():
            grouped.setdefault(item["category"], []).append(item)

        return {"last_updated": datetime.now(timezone.utc), "paints": grouped}

    async def export(self, fmt: str = "csv") -> ExportFile:
        fmt = (fmt or "csv").lower()
        if fmt not in ("csv", "excel"):
            raise AppException(
                ErrorType.VALIDATION_ERROR,
                f"Unsupported format '{fmt}'. Use csv or excel"
            )

        rows = [to_row(item) for item in await self.available_items()]
        logger.info(f"Exporting price list as {fmt} ({len(rows)} rows)")

        if fmt == "excel":
            return ExportFile(
                content=render_excel(rows),
                media_type=EXCEL_MEDIA_TYPE,
                filename=f"{Config.PRICE_LIST_FILENAME}.xlsx",
            )
        return ExportFile(
            content=render_csv(rows),
            media_type=CSV_MEDIA_TYPE,
            filename=f"{Config.PRICE_LIST_FILENAME}.csv",
        )


def render_csv(rows: list[dict]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(COLUMNS))
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def render_excel(rows: list[dict]) -> bytes:
    buffer = io.BytesIO()
    df = pd.DataFrame(rows, columns=list(COLUMNS))
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return buffer.getvalue()


def get_price_list_service(session: AsyncSession = Depends(get_session)) -> PriceListService:
    return PriceListService(session)
