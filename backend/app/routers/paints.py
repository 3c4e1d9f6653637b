from fastapi import APIRouter, Depends, Request, status
from starlette.datastructures import FormData, UploadFile

from app.schemas.paint import (
    BulkDeleteRequest, BulkDeleteResponse, MessageResponse, PaintEnvelope,
    PaintListResponse, PaintResponse, PaintSearchResponse, RatingRequest,
    StatisticsResponse, StockAdjustment, parse_features,
)
from app.services.auth_service import require_admin
from app.services.catalog_service import CatalogService, get_catalog_service
from app.services.query_builder import (
    build_listing_query, build_search_query, parse_int,
)

router = APIRouter(prefix="/api/paints", tags=["paints"])

# Multipart field name -> record attribute
FORM_FIELDS = {
    "name": "name",
    "category": "category",
    "brand": "brand",
    "size": "size",
    "price": "price",
    "originalPrice": "original_price",
    "description": "description",
    "features": "features",
    "available": "available",
    "featured": "featured",
    "newArrival": "new_arrival",
    "rating": "rating",
    "reviewCount": "review_count",
    "stockQuantity": "stock_quantity",
    "sku": "sku",
}


def form_to_fields(form: FormData) -> dict:
    """Coerce multipart strings into record values, keeping only submitted fields."""
    fields = {}
    for key, attr in FORM_FIELDS.items():
        value = form.get(key)
        if not isinstance(value, str):
            continue

        if attr == "available":
            fields[attr] = value != "false"
        elif attr in ("featured", "new_arrival"):
            fields[attr] = value == "true"
        elif attr == "features":
            fields[attr] = parse_features(value)
        elif attr == "original_price":
            # Blank clears the sale price; anything else must parse as a number
            fields[attr] = value.strip() or None
        elif attr in ("rating", "review_count", "stock_quantity"):
            fields[attr] = value.strip() or 0
        else:
            fields[attr] = value

    # Older admin pages still send isNew
    legacy_new = form.get("isNew")
    if "new_arrival" not in fields and isinstance(legacy_new, str):
        fields["new_arrival"] = legacy_new == "true"

    return fields


def form_image(form: FormData) -> UploadFile | None:
    image = form.get("image")
    if isinstance(image, UploadFile) and image.filename:
        return image
    return None


def to_response(paints) -> list[PaintResponse]:
    return [PaintResponse.model_validate(p) for p in paints]


@router.get("", response_model=PaintListResponse)
async def list_paints(
    category: str | None = None,
    featured: str | None = None,
    search: str | None = None,
    sort: str | None = None,
    order: str | None = None,
    service: CatalogService = Depends(get_catalog_service),
):
    query = build_listing_query(category=category, featured=featured, search=search, sort=sort, order=order)
    paints = await service.list_paints(query)
    return PaintListResponse(count=len(paints), data=to_response(paints))


@router.get("/search/advanced", response_model=PaintSearchResponse)
async def advanced_search(request: Request, service: CatalogService = Depends(get_catalog_service)):
    params = request.query_params
    query = build_search_query(
        query=params.get("query"),
        min_price=params.get("minPrice"),
        max_price=params.get("maxPrice"),
        categories=params.get("categories"),
        sizes=params.get("sizes"),
        available=params.get("available"),
        featured=params.get("featured"),
        sort_by=params.get("sortBy"),
        sort_order=params.get("sortOrder"),
        page=params.get("page"),
        limit=params.get("limit"),
    )
    paints, pagination = await service.search_paints(query)
    return PaintSearchResponse(data=to_response(paints), pagination=pagination)


@router.get("/featured", response_model=PaintListResponse)
async def featured_paints(limit: str | None = None, service: CatalogService = Depends(get_catalog_service)):
    paints = await service.featured_paints(parse_int(limit, 8))
    return PaintListResponse(count=len(paints), data=to_response(paints))


@router.get("/new-arrivals", response_model=PaintListResponse)
async def new_arrivals(limit: str | None = None, service: CatalogService = Depends(get_catalog_service)):
    paints = await service.new_arrivals(parse_int(limit, 8))
    return PaintListResponse(count=len(paints), data=to_response(paints))


@router.get("/on-sale", response_model=PaintListResponse)
async def on_sale(limit: str | None = None, service: CatalogService = Depends(get_catalog_service)):
    paints = await service.on_sale(parse_int(limit, 12))
    return PaintListResponse(count=len(paints), data=to_response(paints))


@router.get("/stats/summary", response_model=StatisticsResponse)
async def statistics(
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    return StatisticsResponse(data=await service.statistics())


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    body: BulkDeleteRequest,
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    deleted = await service.bulk_delete(body.ids)
    return BulkDeleteResponse(message=f"Deleted {deleted} paints successfully", deleted_count=deleted)


@router.get("/{paint_id}", response_model=PaintEnvelope)
async def get_paint(paint_id: str, service: CatalogService = Depends(get_catalog_service)):
    paint = await service.get_paint(paint_id)
    return PaintEnvelope(data=PaintResponse.model_validate(paint))


@router.post("", response_model=PaintEnvelope, status_code=status.HTTP_201_CREATED)
async def create_paint(
    request: Request,
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    async with request.form() as form:
        paint = await service.create_paint(form_to_fields(form), form_image(form))
    return PaintEnvelope(message="Paint created successfully", data=PaintResponse.model_validate(paint))


@router.put("/{paint_id}", response_model=PaintEnvelope)
async def update_paint(
    paint_id: str,
    request: Request,
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    async with request.form() as form:
        paint = await service.update_paint(paint_id, form_to_fields(form), form_image(form))
    return PaintEnvelope(message="Paint updated successfully", data=PaintResponse.model_validate(paint))


@router.delete("/{paint_id}", response_model=MessageResponse)
async def delete_paint(
    paint_id: str,
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    await service.delete_paint(paint_id)
    return MessageResponse(message="Paint deleted successfully")


@router.patch("/{paint_id}/stock", response_model=PaintEnvelope)
async def adjust_stock(
    paint_id: str,
    body: StockAdjustment,
    service: CatalogService = Depends(get_catalog_service),
    _admin: dict = Depends(require_admin),
):
    paint = await service.adjust_stock(paint_id, body.delta)
    return PaintEnvelope(message="Stock updated", data=PaintResponse.model_validate(paint))


@router.post("/{paint_id}/rating", response_model=PaintEnvelope)
async def rate_paint(
    paint_id: str,
    body: RatingRequest,
    service: CatalogService = Depends(get_catalog_service),
):
    paint = await service.update_rating(paint_id, body.rating)
    return PaintEnvelope(message="Rating recorded", data=PaintResponse.model_validate(paint))
