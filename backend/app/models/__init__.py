from app.models.paint import Paint, CATEGORIES, SIZES, MAX_PRICE

__all__ = ["Paint", "CATEGORIES", "SIZES", "MAX_PRICE"]
