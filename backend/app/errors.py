from enum import Enum


class ErrorType(Enum):
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INSUFFICIENT_STOCK = "insufficient_stock"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_CONFIGURED = "not_configured"
    STORAGE_ERROR = "storage_error"
    INTERNAL_ERROR = "internal_error"


# Map error types to HTTP status codes
ERROR_STATUS_MAP = {
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.INSUFFICIENT_STOCK: 409,
    ErrorType.UNAUTHORIZED: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.NOT_CONFIGURED: 503,
    ErrorType.STORAGE_ERROR: 500,
    ErrorType.INTERNAL_ERROR: 500,
}
