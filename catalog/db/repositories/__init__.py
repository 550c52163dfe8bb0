from catalog.db.repositories.category_repository import CategoryRepository
from catalog.db.repositories.product_repository import ProductRepository

__all__ = [
    "CategoryRepository",
    "ProductRepository",
]
