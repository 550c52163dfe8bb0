# catalog/schemas/__init__.py
from catalog.schemas.category import (
    CategoryBase,
    CategoryCreate,
    CategoryUpdate,
    CategoryInDB,
    CategoryDetail,
    CategoryWithProducts,
    CategoryTreeNode,
    ProductSummary,
)

__all__ = [
    "CategoryBase",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryInDB",
    "CategoryDetail",
    "CategoryWithProducts",
    "CategoryTreeNode",
    "ProductSummary",
]
