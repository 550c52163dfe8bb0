# catalog/db/repositories/category_repository.py
from typing import Iterable, List, Optional
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from catalog.db.models.category import Category


class CategoryRepository:
    """Tree store: persistence for Category rows.

    Every write commits immediately; callers that need several rows to land
    together use ``save_all``.
    """

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, category_id: UUID, for_update: bool = False) -> Optional[Category]:
        """Get category by ID, optionally locking the row until the next commit"""
        query = self.db_session.query(Category).filter(Category.id == category_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_slug(self, slug: str) -> Optional[Category]:
        """Get category by slug"""
        return self.db_session.query(Category).filter(Category.slug == slug).first()

    def list(
        self,
        include_inactive: bool = True,
        parent_id: Optional[UUID] = None,
        roots_only: bool = False,
    ) -> List[Category]:
        """List categories ordered by level, display order and name"""
        query = self.db_session.query(Category)
        if not include_inactive:
            query = query.filter(Category.is_active.is_(True))
        if roots_only:
            query = query.filter(Category.parent_id.is_(None))
        elif parent_id is not None:
            query = query.filter(Category.parent_id == parent_id)
        return query.order_by(
            Category.level, Category.display_order, Category.name
        ).all()

    def list_children(self, parent_id: Optional[UUID]) -> List[Category]:
        """List the direct children of a category (roots when parent_id is None)"""
        query = self.db_session.query(Category)
        if parent_id is None:
            query = query.filter(Category.parent_id.is_(None))
        else:
            query = query.filter(Category.parent_id == parent_id)
        return query.order_by(Category.display_order, Category.name).all()

    def count(self) -> int:
        """Count all categories"""
        return self.db_session.query(func.count(Category.id)).scalar() or 0

    def count_children(self, category_id: UUID) -> int:
        """Count direct subcategories of a category"""
        return (
            self.db_session.query(func.count(Category.id))
            .filter(Category.parent_id == category_id)
            .scalar()
            or 0
        )

    def create(self, category: Category) -> Category:
        """Insert a new category row"""
        self.db_session.add(category)
        self.db_session.commit()
        self.db_session.refresh(category)
        return category

    def save(self, category: Category) -> Category:
        """Persist changes to a single category row"""
        self.db_session.add(category)
        self.db_session.commit()
        self.db_session.refresh(category)
        return category

    def save_all(self, categories: Iterable[Category]) -> int:
        """Persist several category rows in one transaction"""
        count = 0
        for category in categories:
            self.db_session.add(category)
            count += 1
        self.db_session.commit()
        return count

    def delete(self, category: Category) -> None:
        """Delete a category row"""
        self.db_session.delete(category)
        self.db_session.commit()

    def rollback(self) -> None:
        """Discard uncommitted changes after a failed write"""
        self.db_session.rollback()

    def refresh_state(self) -> None:
        """Drop cached row state so the next reads see the latest committed data"""
        self.db_session.expire_all()
