from fastapi import APIRouter, Depends

from app.schemas.auth import AdminMeResponse, LoginRequest, LoginResponse
from app.services.auth_service import authenticate, require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    return LoginResponse(**authenticate(body.email, body.password))


@router.get("/me", response_model=AdminMeResponse)
async def me(admin: dict = Depends(require_admin)):
    return AdminMeResponse(admin={k: v for k, v in admin.items() if k != "exp"})
