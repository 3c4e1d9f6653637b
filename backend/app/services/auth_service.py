import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Config
from app.errors import ErrorType
from app.exceptions import AppException

logger = logging.getLogger(__name__)

ADMIN_ROLES = {"admin", "super-admin"}

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(claims: dict, expires_in: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(hours=Config.JWT_EXPIRE_HOURS))
    payload = {**claims, "exp": expire}
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify a bearer token and return its claims.

    Raises:
        AppException: UNAUTHORIZED for expired or invalid tokens
    """
    try:
        return jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AppException(ErrorType.UNAUTHORIZED, "Token expired")
    except jwt.InvalidTokenError:
        raise AppException(ErrorType.UNAUTHORIZED, "Invalid token")


def authenticate(email: str, password: str) -> dict:
    """Check admin credentials and issue a token."""
    if not Config.ADMIN_PASSWORD:
        raise AppException(ErrorType.NOT_CONFIGURED, "Admin credentials not configured")

    email_ok = secrets.compare_digest(email.strip().lower(), Config.ADMIN_EMAIL.lower())
    password_ok = secrets.compare_digest(password, Config.ADMIN_PASSWORD)
    if not (email_ok and password_ok):
        logger.warning(f"Failed admin login for {email}")
        raise AppException(ErrorType.UNAUTHORIZED, "Invalid credentials")

    admin = {"id": "admin", "email": Config.ADMIN_EMAIL, "name": Config.ADMIN_NAME, "role": "super-admin"}
    token = create_access_token({"sub": admin["id"], "email": admin["email"], "role": admin["role"]})
    logger.info(f"Admin {admin['email']} logged in")
    return {"token": token, "admin": admin}


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """FastAPI dependency guarding admin-only routes."""
    if credentials is None or not credentials.credentials:
        raise AppException(ErrorType.UNAUTHORIZED, "No authentication token, access denied")

    claims = decode_access_token(credentials.credentials)
    if claims.get("role") not in ADMIN_ROLES:
        raise AppException(ErrorType.FORBIDDEN, "Admin access required")
    return claims
