# catalog/services/category_service.py
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from catalog.core.exceptions import (
    CatalogError,
    NotFoundError,
    ServerError,
    ValidationError,
    ValidationReason,
)
from catalog.core.logging import get_logger
from catalog.db.models.category import Category
from catalog.db.repositories.category_repository import CategoryRepository
from catalog.db.repositories.product_repository import ProductRepository
from catalog.schemas.category import (
    CategoryCreate,
    CategoryDetail,
    CategoryInDB,
    CategoryTreeNode,
    CategoryUpdate,
    CategoryWithProducts,
    ProductSummary,
)
from catalog.services.cache_service import CategoryCache
from catalog.services.integrity_guard import IntegrityGuard
from catalog.services.locks import SubtreeLockRegistry
from catalog.services.path_materializer import CascadeResult, PathMaterializer
from catalog.utils.ids import to_uuid
from catalog.utils.slug import validate_name

logger = get_logger(__name__)

MAX_LOCK_ATTEMPTS = 3

# Columns that may be omitted from an update but never set to NULL
_NON_NULLABLE_FIELDS = ("is_active", "display_order")


@dataclass
class MutationResult:
    """Outcome of an update or move.

    ``changed`` is False when the request would write nothing, such as a
    move to the current parent. ``cascade`` lists the descendants that were
    and were not reached.
    """

    category: CategoryInDB
    changed: bool = True
    cascade: CascadeResult = field(default_factory=CascadeResult)


class CategoryService:
    """Service for the category hierarchy: cached reads and tree mutations.

    Every mutation runs Validate -> Guard -> Commit -> Cascade -> Invalidate
    while holding the locks of the trees it touches.
    """

    def __init__(
        self,
        db_session,
        cache: Optional[CategoryCache] = None,
        locks: Optional[SubtreeLockRegistry] = None,
    ):
        self.category_repo = CategoryRepository(db_session)
        self.product_repo = ProductRepository(db_session)
        self.guard = IntegrityGuard(self.category_repo)
        self.materializer = PathMaterializer(self.category_repo)
        self.cache = cache if cache is not None else CategoryCache()
        self.locks = locks if locks is not None else SubtreeLockRegistry()

    # Reads

    def get_category(self, category_id) -> CategoryDetail:
        """Get category by ID with its parent and active subcategories, served from cache when possible"""
        category_id = to_uuid(category_id)
        key = self.cache.id_key(category_id)
        cached = self.cache.get(key)
        if cached:
            return CategoryDetail.model_validate(cached)

        category = self._read(self.category_repo.get_by_id, category_id)
        if not category:
            raise NotFoundError(f"Category not found: {category_id}")

        result = self._read(self._detail, category)
        self.cache.set(key, result.model_dump(mode="json"))
        return result

    def get_by_slug(self, slug: str) -> CategoryDetail:
        """Get category by slug, served from cache when possible"""
        key = self.cache.slug_key(slug)
        cached = self.cache.get(key)
        if cached:
            return CategoryDetail.model_validate(cached)

        category = self._read(self.category_repo.get_by_slug, slug)
        if not category:
            raise NotFoundError(f"Category not found: {slug}")

        result = self._read(self._detail, category)
        self.cache.set(key, result.model_dump(mode="json"))
        return result

    def list_categories(
        self,
        include_inactive: bool = False,
        parent_id=None,
        roots_only: bool = False,
        include_products: bool = False,
    ) -> List[CategoryInDB]:
        """
        List categories ordered by level, display order and name.

        With ``include_products`` every entry is a ``CategoryWithProducts``
        carrying its active products.
        """
        parent_id = to_uuid(parent_id, "Parent category")
        schema = CategoryWithProducts if include_products else CategoryInDB
        suffix = None
        if include_inactive or parent_id is not None or roots_only or include_products:
            parent_part = "root" if roots_only else (parent_id or "any")
            suffix = (
                f"inactive={int(include_inactive)}:parent={parent_part}"
                f":products={int(include_products)}"
            )
        key = self.cache.listing_key(suffix)

        cached = self.cache.get(key)
        if cached is not None:
            return [schema.model_validate(item) for item in cached]

        categories = self._read(
            self.category_repo.list,
            include_inactive=include_inactive,
            parent_id=parent_id,
            roots_only=roots_only,
        )
        if include_products:
            result = self._read(self._with_products, categories)
        else:
            result = [CategoryInDB.model_validate(category) for category in categories]
        self.cache.set(key, [item.model_dump(mode="json") for item in result])
        return result

    def get_tree(self, include_inactive: bool = False) -> List[CategoryTreeNode]:
        """
        Build the nested category tree.

        Categories whose parent is not part of the listing (an inactive
        parent, for example) are left out together with their subtree.
        """
        categories = self._read(self.category_repo.list, include_inactive=include_inactive)
        nodes: Dict[UUID, CategoryTreeNode] = {
            category.id: CategoryTreeNode(**CategoryInDB.model_validate(category).model_dump())
            for category in categories
        }

        roots = []
        for category in categories:
            node = nodes[category.id]
            if category.parent_id is None:
                roots.append(node)
            elif category.parent_id in nodes:
                nodes[category.parent_id].children.append(node)
        return roots

    # Mutations

    def create_category(self, category_data: CategoryCreate) -> CategoryInDB:
        """Create a new category with its path and level derived from its parent"""
        slug = validate_name(category_data.name)
        parent_id = self._parent_uuid(category_data.parent_id)

        with self._locked(parent_id):
            if self._read(self.category_repo.get_by_slug, slug):
                raise ValidationError(
                    f"Category with slug '{slug}' already exists",
                    reason=ValidationReason.DUPLICATE_SLUG,
                )

            category_dict = category_data.model_dump(exclude={"parent_id", "name"})
            category = Category(
                **category_dict,
                name=category_data.name.strip(),
                slug=slug,
                parent_id=parent_id,
            )
            self._read(self.materializer.materialize, category)
            affected = self._read(self._neighbours, None, parent_id)
            category = self._commit(self.category_repo.create, category)

        logger.info(f"Created category {category.id} at {category.path}")
        self.cache.invalidate_listing()
        self.cache.invalidate_many(affected)
        return CategoryInDB.model_validate(category)

    def update_category(self, category_id, category_data: CategoryUpdate) -> MutationResult:
        """
        Update a category.

        A changed parent is checked by the integrity guard. A changed parent
        or a rename that changes the slug is cascaded to every descendant.
        An update that matches the stored values writes nothing.
        """
        category_id = to_uuid(category_id)
        changes = category_data.model_dump(exclude_unset=True)
        parent_given = "parent_id" in changes
        new_parent_id = self._parent_uuid(changes.pop("parent_id", None))
        new_name = changes.pop("name", None)
        new_slug = validate_name(new_name) if new_name is not None else None
        for key in _NON_NULLABLE_FIELDS:
            if key in changes and changes[key] is None:
                changes.pop(key)

        with self._locked(category_id, new_parent_id):
            category = self._load_for_update(category_id)
            old_slug = category.slug
            old_parent_id = category.parent_id

            changes = {key: value for key, value in changes.items() if getattr(category, key) != value}
            if new_name is not None and new_name.strip() == category.name:
                new_name = new_slug = None
            reparent = parent_given and new_parent_id != category.parent_id
            if not changes and new_name is None and not reparent:
                return self._unchanged(category)

            if new_slug is not None and new_slug != old_slug:
                existing = self._read(self.category_repo.get_by_slug, new_slug)
                if existing is not None and existing.id != category.id:
                    raise ValidationError(
                        f"Category with slug '{new_slug}' already exists",
                        reason=ValidationReason.DUPLICATE_SLUG,
                    )

            if reparent:
                self._read(self.guard.can_reparent, category.id, new_parent_id).raise_for_failure()

            for key, value in changes.items():
                setattr(category, key, value)
            if new_name is not None:
                category.name = new_name.strip()
                category.slug = new_slug
            if reparent:
                category.parent_id = new_parent_id

            structural = reparent or category.slug != old_slug
            return self._commit_and_cascade(category, old_slug, old_parent_id, structural)

    def move_category(self, category_id, new_parent_id) -> MutationResult:
        """
        Reparent a category; None makes it a root.

        Moving to the current parent only re-validates and writes nothing.
        """
        category_id = to_uuid(category_id)
        new_parent_id = self._parent_uuid(new_parent_id)

        with self._locked(category_id, new_parent_id):
            category = self._load_for_update(category_id)

            if new_parent_id == category.parent_id:
                if new_parent_id is not None and self._read(self.category_repo.get_by_id, new_parent_id) is None:
                    raise ValidationError(
                        f"Parent category not found: {new_parent_id}",
                        reason=ValidationReason.PARENT_NOT_FOUND,
                    )
                return self._unchanged(category)

            self._read(self.guard.can_reparent, category.id, new_parent_id).raise_for_failure()

            old_slug, old_parent_id = category.slug, category.parent_id
            category.parent_id = new_parent_id
            return self._commit_and_cascade(category, old_slug, old_parent_id, structural=True)

    def delete_category(self, category_id) -> CategoryInDB:
        """Delete a category that has no subcategories and no products"""
        category_id = to_uuid(category_id)

        with self._locked(category_id):
            category = self._load_for_update(category_id)

            if self._read(self.category_repo.count_children, category_id) > 0:
                raise ValidationError(
                    "Cannot delete category with subcategories",
                    reason=ValidationReason.CATEGORY_HAS_CHILDREN,
                )
            if self._read(self.product_repo.count_by_category, category_id) > 0:
                raise ValidationError(
                    "Cannot delete category with products",
                    reason=ValidationReason.CATEGORY_HAS_PRODUCTS,
                )

            deleted = CategoryInDB.model_validate(category)
            affected = self._read(self._neighbours, None, category.parent_id)
            self._commit(self.category_repo.delete, category)

        logger.info(f"Deleted category {deleted.id} ({deleted.path})")
        self.cache.invalidate(deleted.id, deleted.slug)
        self.cache.invalidate_many(affected)
        self.cache.invalidate_listing()
        return deleted

    # Internals

    def _commit_and_cascade(
        self,
        category: Category,
        old_slug: str,
        old_parent_id: Optional[UUID],
        structural: bool,
    ) -> MutationResult:
        affected = self._read(self._neighbours, category.id, old_parent_id, category.parent_id)
        if structural:
            try:
                self._read(self.materializer.materialize, category)
            except CatalogError:
                self._safe_rollback()
                raise

        category = self._commit(self.category_repo.save, category)
        category_id, slug = category.id, category.slug
        committed = CategoryInDB.model_validate(category)
        logger.info(f"Updated category {category_id} at {committed.path}")

        cascade = CascadeResult()
        try:
            if structural:
                self.materializer.cascade_descendants(category, cascade)
        finally:
            self.cache.invalidate(category_id, slug)
            if old_slug != slug:
                self.cache.invalidate_slug(old_slug)
            self.cache.invalidate_many(cascade.updated)
            self.cache.invalidate_many(affected)
            self.cache.invalidate_listing()

        return MutationResult(category=committed, changed=True, cascade=cascade)

    def _load_for_update(self, category_id: UUID) -> Category:
        category = self._read(self.category_repo.get_by_id, category_id, for_update=True)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category

    def _unchanged(self, category: Category) -> MutationResult:
        unchanged = CategoryInDB.model_validate(category)
        # End the transaction to release the row lock
        self._safe_rollback()
        logger.info(f"Category {unchanged.id} unchanged; nothing to write")
        return MutationResult(category=unchanged, changed=False)

    def _neighbours(self, category_id: Optional[UUID], *parent_ids) -> Dict[UUID, str]:
        """Id -> slug of the parents and children whose cached detail embeds a category"""
        neighbours = {}
        for parent_id in parent_ids:
            if parent_id is None or parent_id in neighbours:
                continue
            parent = self.category_repo.get_by_id(parent_id)
            if parent is not None:
                neighbours[parent.id] = parent.slug
        if category_id is not None:
            for child in self.category_repo.list_children(category_id):
                neighbours[child.id] = child.slug
        return neighbours

    def _detail(self, category: Category) -> CategoryDetail:
        parent = None
        if category.parent_id is not None:
            parent = self.category_repo.get_by_id(category.parent_id)
        children = self.category_repo.list_children(category.id)
        return CategoryDetail(
            **CategoryInDB.model_validate(category).model_dump(),
            parent=CategoryInDB.model_validate(parent) if parent is not None else None,
            subcategories=[CategoryInDB.model_validate(child) for child in children if child.is_active],
        )

    def _with_products(self, categories: List[Category]) -> List[CategoryWithProducts]:
        products = self.product_repo.list_active_by_categories(category.id for category in categories)
        by_category = defaultdict(list)
        for product in products:
            by_category[product.category_id].append(ProductSummary.model_validate(product))
        return [
            CategoryWithProducts(
                **CategoryInDB.model_validate(category).model_dump(),
                products=by_category[category.id],
            )
            for category in categories
        ]

    def _parent_uuid(self, value) -> Optional[UUID]:
        try:
            return to_uuid(value, "Parent category")
        except NotFoundError as e:
            raise ValidationError(e.message, reason=ValidationReason.PARENT_NOT_FOUND)

    def _root_id(self, category_id: Optional[UUID]) -> Optional[UUID]:
        """Find the root of the tree containing a category, stopping on a broken chain"""
        if category_id is None:
            return None
        current = self.category_repo.get_by_id(category_id)
        if current is None:
            return category_id

        max_hops = self.category_repo.count() + 1
        seen = set()
        while current.parent_id is not None and current.id not in seen and len(seen) < max_hops:
            seen.add(current.id)
            parent = self.category_repo.get_by_id(current.parent_id)
            if parent is None:
                break
            current = parent
        return current.id

    def _lock_scope(self, *category_ids) -> frozenset:
        self.category_repo.refresh_state()
        roots = (self._root_id(category_id) for category_id in category_ids)
        return frozenset(root for root in roots if root is not None)

    @contextmanager
    def _locked(self, *category_ids):
        """
        Hold the locks of every tree the given categories belong to.

        The scope is recomputed after acquiring; if a concurrent move changed
        which trees are involved, the locks are released and taken again.
        """
        for attempt in range(1, MAX_LOCK_ATTEMPTS + 1):
            scope = self._read(self._lock_scope, *category_ids)
            with self.locks.hold(scope):
                if self._read(self._lock_scope, *category_ids) != scope:
                    logger.info(f"Tree changed while waiting for locks (attempt {attempt}); retrying")
                    continue
                try:
                    yield
                except Exception:
                    self._safe_rollback()
                    raise
                return
        raise ServerError("Category tree kept changing while acquiring locks")

    def _safe_rollback(self) -> None:
        try:
            self.category_repo.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")

    def _read(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            self._safe_rollback()
            logger.error(f"Category store read failed: {e}")
            raise ServerError("Failed to read from the category store", cause=e) from e

    def _commit(self, fn, *args):
        try:
            return fn(*args)
        except IntegrityError as e:
            self._safe_rollback()
            if "slug" in str(e.orig).lower():
                raise ValidationError(
                    "Category slug already exists",
                    reason=ValidationReason.DUPLICATE_SLUG,
                ) from e
            logger.error(f"Category write violated a constraint: {e}")
            raise ServerError("Failed to write category", cause=e) from e
        except SQLAlchemyError as e:
            self._safe_rollback()
            logger.error(f"Category write failed: {e}")
            raise ServerError("Failed to write category", cause=e) from e
