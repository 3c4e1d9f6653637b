import re
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import SQLAlchemyError

from app.errors import ErrorType
from app.exceptions import AppException
from app.models import Paint
from app.services.query_builder import build_listing_query, build_search_query

NEW_PAINT = {"name": "Test Paint", "category": "Interior", "brand": "Acme", "size": "4L", "price": "1000"}


async def count_paints(session) -> int:
    return (await session.execute(select(func.count(Paint.id)))).scalar_one()


def stored_files(storage) -> list:
    return list(storage.root.iterdir()) if storage.root.exists() else []


class TestCreate:
    """Tests for creating paints."""

    async def test_create_generates_sku(self, service):
        """Paint created without a SKU gets brand/category initials plus four digits."""
        paint = await service.create_paint(dict(NEW_PAINT))

        assert paint.id
        assert re.fullmatch(r"ACM-IN-\d{4}", paint.sku)
        assert paint.price == 1000
        assert paint.available is True
        assert paint.created_at is not None

    async def test_create_keeps_supplied_sku_uppercased(self, service):
        paint = await service.create_paint({**NEW_PAINT, "sku": " acm-in-0001 "})
        assert paint.sku == "ACM-IN-0001"

    async def test_missing_fields(self, service, session):
        with pytest.raises(AppException) as exc_info:
            await service.create_paint({"name": "Lonely"})

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR
        assert "category" in exc_info.value.message
        assert len(exc_info.value.errors) == 4
        assert await count_paints(session) == 0

    @pytest.mark.parametrize("price", ["abc", "0", "-10"])
    async def test_price_must_be_positive(self, service, price):
        with pytest.raises(AppException) as exc_info:
            await service.create_paint({**NEW_PAINT, "price": price})

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR
        assert exc_info.value.message == "Price must be a positive number"

    async def test_field_rules_reported_per_field(self, service, session):
        with pytest.raises(AppException) as exc_info:
            await service.create_paint({**NEW_PAINT, "name": "X", "category": "Chalk", "price": "2000000"})

        errors = " ".join(exc_info.value.errors)
        assert "name" in errors
        assert "Chalk is not a valid category" in errors
        assert "price" in errors
        assert await count_paints(session) == 0

    async def test_duplicate_sku_conflicts(self, service, make_paint):
        await make_paint(sku="ACM-IN-1234")

        with pytest.raises(AppException) as exc_info:
            await service.create_paint({**NEW_PAINT, "sku": "ACM-IN-1234"})

        assert exc_info.value.error_type == ErrorType.CONFLICT

    async def test_sku_collision_retries(self, service, make_paint):
        await make_paint(sku="ACM-IN-1111")

        with patch(
            "app.services.catalog_service.generate_sku",
            side_effect=["ACM-IN-1111", "ACM-IN-2222"],
        ):
            paint = await service.create_paint(dict(NEW_PAINT))

        assert paint.sku == "ACM-IN-2222"

    async def test_sku_retries_are_bounded(self, service, make_paint):
        await make_paint(sku="ACM-IN-1111")

        with patch("app.services.catalog_service.generate_sku", return_value="ACM-IN-1111"):
            with pytest.raises(AppException) as exc_info:
                await service.create_paint(dict(NEW_PAINT))

        assert exc_info.value.error_type == ErrorType.CONFLICT

    async def test_create_with_image(self, service, storage, make_upload):
        paint = await service.create_paint(dict(NEW_PAINT), make_upload())

        assert paint.image.startswith("/uploads/")
        assert paint.image.endswith(".png")
        assert storage.resolve(paint.image).exists()

    async def test_failed_save_removes_uploaded_image(self, service, storage, make_upload):
        service.session.commit = AsyncMock(side_effect=SQLAlchemyError("connection lost"))

        with pytest.raises(AppException) as exc_info:
            await service.create_paint(dict(NEW_PAINT), make_upload())

        assert exc_info.value.error_type == ErrorType.INTERNAL_ERROR
        assert "connection lost" not in exc_info.value.message
        assert stored_files(storage) == []

    async def test_rejected_image_writes_nothing(self, service, session, storage, make_upload):
        with pytest.raises(AppException) as exc_info:
            await service.create_paint(dict(NEW_PAINT), make_upload("notes.txt", "text/plain"))

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR
        assert stored_files(storage) == []
        assert await count_paints(session) == 0


class TestUpdate:
    """Tests for partial updates."""

    async def test_partial_update(self, service, make_paint):
        original = await make_paint(name="Old Name", description="Keep me")

        paint = await service.update_paint(original.id, {"name": "New Name", "original_price": 1500})

        assert paint.name == "New Name"
        assert paint.description == "Keep me"
        assert paint.discount_percentage == 33

    async def test_clear_original_price(self, service, make_paint):
        original = await make_paint(original_price=1500)
        paint = await service.update_paint(original.id, {"original_price": None})
        assert paint.original_price is None

    @pytest.mark.parametrize("field,value", [
        ("original_price", "abc"),
        ("stock_quantity", "lots"),
        ("review_count", "1.5"),
    ])
    async def test_malformed_numbers_rejected(self, service, make_paint, field, value):
        original = await make_paint(original_price=1500, stock_quantity=7, review_count=3)

        with pytest.raises(AppException) as exc_info:
            await service.update_paint(original.id, {field: value})

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR
        reloaded = await service.get_paint(original.id)
        assert reloaded.original_price == 1500
        assert reloaded.stock_quantity == 7
        assert reloaded.review_count == 3

    async def test_price_revalidated(self, service, make_paint):
        original = await make_paint()

        with pytest.raises(AppException) as exc_info:
            await service.update_paint(original.id, {"price": "0"})

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR

    async def test_sku_is_not_updatable(self, service, make_paint):
        original = await make_paint(sku="RUD-IN-1000")
        paint = await service.update_paint(original.id, {"sku": "NEW-SK-9999", "name": "Renamed"})
        assert paint.sku == "RUD-IN-1000"

    async def test_missing_paint(self, service):
        with pytest.raises(AppException) as exc_info:
            await service.update_paint(str(uuid.uuid4()), {"name": "Nobody"})
        assert exc_info.value.error_type == ErrorType.NOT_FOUND

    async def test_new_image_replaces_old(self, service, storage, make_upload):
        created = await service.create_paint(dict(NEW_PAINT), make_upload("first.png"))
        old_image = created.image
        old_file = storage.resolve(old_image)

        updated = await service.update_paint(created.id, {}, make_upload("second.webp", "image/webp"))

        assert updated.image != old_image
        assert updated.image.endswith(".webp")
        assert not old_file.exists()
        assert storage.resolve(updated.image).exists()

    async def test_failed_update_keeps_old_image(self, service, storage, make_upload):
        created = await service.create_paint(dict(NEW_PAINT), make_upload("first.png"))
        old_file = storage.resolve(created.image)
        service.session.commit = AsyncMock(side_effect=SQLAlchemyError("disk full"))

        with pytest.raises(AppException):
            await service.update_paint(created.id, {"name": "Renamed"}, make_upload("second.png"))

        assert old_file.exists()
        assert [f.name for f in stored_files(storage)] == [old_file.name]


class TestDelete:
    """Tests for single and bulk delete."""

    async def test_delete_twice(self, service, storage, make_upload):
        created = await service.create_paint(dict(NEW_PAINT), make_upload())
        image_file = storage.resolve(created.image)

        await service.delete_paint(created.id)
        assert not image_file.exists()

        with pytest.raises(AppException) as exc_info:
            await service.delete_paint(created.id)
        assert exc_info.value.error_type == ErrorType.NOT_FOUND

    async def test_malformed_id_is_not_found(self, service):
        with pytest.raises(AppException) as exc_info:
            await service.get_paint("not-a-real-id")
        assert exc_info.value.error_type == ErrorType.NOT_FOUND

    async def test_bulk_delete(self, service, session, storage, make_paint, make_upload):
        keep = await make_paint()
        first = await make_paint()
        second = await service.create_paint(dict(NEW_PAINT), make_upload())

        deleted = await service.bulk_delete([first.id, second.id, str(uuid.uuid4()), "garbage"])

        assert deleted == 2
        assert await count_paints(session) == 1
        assert (await service.get_paint(keep.id)).id == keep.id
        assert stored_files(storage) == []

    async def test_bulk_delete_requires_ids(self, service):
        with pytest.raises(AppException) as exc_info:
            await service.bulk_delete([])
        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR


class TestStock:
    """Tests for stock adjustments and the availability invariant."""

    async def test_decrease_beyond_stock_is_rejected(self, service, make_paint):
        paint = await make_paint(stock_quantity=3)

        with pytest.raises(AppException) as exc_info:
            await service.adjust_stock(paint.id, -5)

        assert exc_info.value.error_type == ErrorType.INSUFFICIENT_STOCK
        reloaded = await service.get_paint(paint.id)
        assert reloaded.stock_quantity == 3
        assert reloaded.available is True

    async def test_restock_from_zero_makes_available(self, service, make_paint):
        paint = await make_paint(stock_quantity=0, available=False)

        updated = await service.adjust_stock(paint.id, 5)

        assert updated.stock_quantity == 5
        assert updated.available is True

    async def test_reaching_zero_makes_unavailable(self, service, make_paint):
        paint = await make_paint(stock_quantity=4)

        updated = await service.adjust_stock(paint.id, -4)

        assert updated.stock_quantity == 0
        assert updated.available is False

    async def test_availability_is_set_before_quantity(self, service, make_paint):
        """MySQL reads earlier SET targets, so availability must see the old stock."""
        paint = await make_paint(stock_quantity=0, available=False)
        execute = AsyncMock(wraps=service.session.execute)

        with patch.object(service.session, "execute", execute):
            await service.adjust_stock(paint.id, 3)

        sql = str(execute.call_args_list[0].args[0].compile(dialect=mysql.dialect()))
        assert sql.index("available=") < sql.index("stock_quantity=")

    async def test_partial_decrease_keeps_availability(self, service, make_paint):
        paint = await make_paint(stock_quantity=10, available=False)

        updated = await service.adjust_stock(paint.id, -2)

        assert updated.stock_quantity == 8
        assert updated.available is False

    async def test_zero_delta_rejected(self, service, make_paint):
        paint = await make_paint()
        with pytest.raises(AppException) as exc_info:
            await service.adjust_stock(paint.id, 0)
        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR

    async def test_unknown_paint(self, service):
        with pytest.raises(AppException) as exc_info:
            await service.adjust_stock(str(uuid.uuid4()), 1)
        assert exc_info.value.error_type == ErrorType.NOT_FOUND


class TestRating:
    """Tests for the running rating average."""

    async def test_running_average(self, service, make_paint):
        paint = await make_paint()

        first = await service.update_rating(paint.id, 4)
        assert first.rating == pytest.approx(4.0)
        assert first.review_count == 1

        second = await service.update_rating(paint.id, 2)
        assert second.rating == pytest.approx(3.0)
        assert second.review_count == 2

    async def test_out_of_range(self, service, make_paint):
        paint = await make_paint()
        with pytest.raises(AppException) as exc_info:
            await service.update_rating(paint.id, 6)
        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR


class TestQueries:
    """Tests for listing, search and pagination against the store."""

    async def test_category_and_availability_filter(self, service, make_paint):
        await make_paint(category="Interior", available=True)
        await make_paint(category="Interior", available=False)
        await make_paint(category="Exterior", available=True)

        paints, pagination = await service.search_paints(
            build_search_query(categories="Interior", available="true")
        )

        assert pagination["total"] == 1
        assert all(p.category == "Interior" and p.available for p in paints)

    async def test_price_range_is_inclusive(self, service, make_paint):
        for price in (500, 1000, 3000, 5000, 7000):
            await make_paint(price=price)

        paints, _ = await service.search_paints(build_search_query(min_price="1000", max_price="5000"))

        assert sorted(p.price for p in paints) == [1000, 3000, 5000]

    async def test_text_search(self, service, make_paint):
        await make_paint(name="Universal PRIMER")
        await make_paint(name="Wall Paint", brand="Primer Works")
        await make_paint(name="Sealer", description="Acts as a primer coat")
        await make_paint(name="Gloss", category="Primer", description="Shiny")

        paints = await service.list_paints(build_listing_query(search="primer"))
        assert {p.name for p in paints} == {"Universal PRIMER", "Wall Paint", "Sealer", "Gloss"}

        found, _ = await service.search_paints(build_search_query(query="primer"))
        assert {p.name for p in found} == {"Universal PRIMER", "Wall Paint", "Sealer"}

    async def test_pages_partition_results(self, service, make_paint):
        for _ in range(7):
            await make_paint(price=1000)

        seen = []
        for page in (1, 2, 3):
            paints, pagination = await service.search_paints(
                build_search_query(sort_by="price", page=str(page), limit="3")
            )
            assert len(paints) <= 3
            assert pagination["pages"] == 3
            seen.extend(p.id for p in paints)

        assert len(seen) == 7
        assert len(set(seen)) == 7

    async def test_listing_is_newest_first(self, service, make_paint):
        older = await make_paint()
        newer = await make_paint()

        paints = await service.list_paints(build_listing_query())
        assert [p.id for p in paints] == [newer.id, older.id]

    async def test_shelves(self, service, make_paint):
        await make_paint(name="Featured", featured=True)
        await make_paint(name="Hidden Featured", featured=True, available=False)
        await make_paint(name="Fresh", new_arrival=True)
        await make_paint(name="Bargain", price=800, original_price=1000)

        assert [p.name for p in await service.featured_paints()] == ["Featured"]
        assert [p.name for p in await service.new_arrivals()] == ["Fresh"]
        assert [p.name for p in await service.on_sale()] == ["Bargain"]


class TestStatistics:
    """Tests for catalog statistics."""

    async def test_price_aggregates(self, service, make_paint):
        await make_paint(price=1000, category="Interior", featured=True)
        await make_paint(price=2000, category="Interior", available=False)
        await make_paint(price=3000, category="Primer", new_arrival=True)

        stats = await service.statistics()

        assert stats["total_products"] == 3
        assert stats["available_products"] == 2
        assert stats["featured_products"] == 1
        assert stats["new_products"] == 1
        assert stats["price_stats"] == {
            "total_value": 6000,
            "average_price": 2000,
            "min_price": 1000,
            "max_price": 3000,
        }
        assert stats["category_stats"] == [
            {"category": "Interior", "count": 2, "average_price": 1500},
            {"category": "Primer", "count": 1, "average_price": 3000},
        ]

    async def test_empty_store(self, service):
        stats = await service.statistics()
        assert stats["total_products"] == 0
        assert stats["price_stats"]["total_value"] == 0
        assert stats["price_stats"]["average_price"] is None
        assert stats["category_stats"] == []
