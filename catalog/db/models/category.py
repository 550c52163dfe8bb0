# catalog/db/models/category.py
from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Uuid, TIMESTAMP, Index, func
from catalog.db.base import Base
import uuid


class Category(Base):
    """
    Category node in the catalog hierarchy.

    ``path`` and ``level`` are materialized from the ancestor chain and are
    only ever written by the path materializer.
    """

    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text)
    parent_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    path = Column(String, nullable=True, comment="Full hierarchy path, e.g. /components/storage/ssd")
    level = Column(Integer, nullable=False, default=1, comment="Hierarchy level (1 = root)")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    meta_title = Column(String)
    meta_description = Column(Text)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_categories_level_order", "level", "display_order"),
    )

    def __repr__(self):
        return f"<Category(id={self.id}, slug='{self.slug}', path='{self.path}')>"
