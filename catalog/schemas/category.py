# catalog/schemas/category.py
from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class CategoryBase(BaseModel):
    """Base Pydantic model for Category data"""
    name: str = Field(..., description="Display name of the category")
    description: Optional[str] = Field(None, description="Optional description of the category")
    parent_id: Optional[UUID] = Field(None, description="Parent category ID, None for a root category")
    is_active: bool = Field(True, description="Whether the category is visible in listings")
    display_order: int = Field(0, description="Sort position among siblings")
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None


class CategoryCreate(CategoryBase):
    """Schema for creating a new Category"""
    pass


class CategoryUpdate(BaseModel):
    """Schema for updating a Category (all fields optional).

    ``parent_id`` is only treated as a move when it is explicitly set;
    setting it to None makes the category a root.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None


class CategoryInDB(CategoryBase):
    """Schema for Category as stored in DB (includes derived fields)"""
    id: UUID
    slug: str
    path: Optional[str] = None
    level: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProductSummary(BaseModel):
    """Product fields embedded in a category listing"""
    id: UUID
    name: str
    slug: str
    price: Optional[float] = None

    model_config = {"from_attributes": True}


class CategoryWithProducts(CategoryInDB):
    """Category with its active products"""
    products: List[ProductSummary] = Field(default_factory=list)


class CategoryDetail(CategoryInDB):
    """Single category read with its parent and active subcategories"""
    parent: Optional[CategoryInDB] = None
    subcategories: List[CategoryInDB] = Field(default_factory=list)


class CategoryTreeNode(CategoryInDB):
    """Category with its nested subcategories"""
    children: List["CategoryTreeNode"] = Field(default_factory=list)


CategoryTreeNode.model_rebuild()
