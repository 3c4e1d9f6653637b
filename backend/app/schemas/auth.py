from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class AdminInfo(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    admin: AdminInfo


class AdminMeResponse(BaseModel):
    success: bool = True
    admin: dict
