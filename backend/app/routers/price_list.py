from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.schemas.paint import PriceListResponse
from app.services.price_list_service import PriceListService, get_price_list_service

router = APIRouter(prefix="/api/price-list", tags=["price-list"])


@router.get("", response_model=PriceListResponse)
async def price_list(service: PriceListService = Depends(get_price_list_service)):
    """Available paints grouped by category."""
    return PriceListResponse.model_validate(await service.build_grouped_view())


@router.get("/download")
async def download_price_list(
    format: str = "csv",
    service: PriceListService = Depends(get_price_list_service),
):
    export = await service.export(format)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
