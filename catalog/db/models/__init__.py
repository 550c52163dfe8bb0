# catalog/db/models/__init__.py
from catalog.db.models.category import Category
from catalog.db.models.product import Product

__all__ = ["Category", "Product"]
