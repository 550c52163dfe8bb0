# catalog/db/models/product.py
from sqlalchemy import Column, String, Boolean, Float, ForeignKey, Uuid, TIMESTAMP, func
from catalog.db.base import Base
import uuid


class Product(Base):
    """
    Product attached to a category.

    Only the category link matters to the hierarchy engine: a category with
    attached products cannot be deleted.
    """

    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    price = Column(Float, nullable=True, comment="Current list price")
    is_active = Column(Boolean, nullable=False, default=True)
    category_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, slug='{self.slug}', category_id={self.category_id})>"
