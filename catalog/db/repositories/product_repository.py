# catalog/db/repositories/product_repository.py
from typing import Iterable, List
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from catalog.db.models.product import Product


class ProductRepository:
    """Read-only access to products attached to categories"""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def count_by_category(self, category_id: UUID) -> int:
        """Count products attached to a category"""
        return (
            self.db_session.query(func.count(Product.id))
            .filter(Product.category_id == category_id)
            .scalar()
            or 0
        )

    def list_active_by_categories(self, category_ids: Iterable[UUID]) -> List[Product]:
        """List active products attached to any of the given categories"""
        category_ids = list(category_ids)
        if not category_ids:
            return []
        return (
            self.db_session.query(Product)
            .filter(Product.category_id.in_(category_ids), Product.is_active.is_(True))
            .order_by(Product.name)
            .all()
        )
