from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/api/v1/health")
@router.get("/api/health", include_in_schema=False)
async def health():
    """Health check endpoint."""
    return {"status": "ok"}
