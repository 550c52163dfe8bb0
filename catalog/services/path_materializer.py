# catalog/services/path_materializer.py
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from uuid import UUID
from sqlalchemy.exc import SQLAlchemyError
from catalog.core.exceptions import ValidationError, ValidationReason
from catalog.core.logging import get_logger
from catalog.db.models.category import Category
from catalog.db.repositories.category_repository import CategoryRepository

logger = get_logger(__name__)


def compute_path(category: Category, parent: Optional[Category]) -> Tuple[str, int]:
    """Derive (path, level) for a category from its parent"""
    if parent is None:
        return f"/{category.slug}", 1
    return f"{parent.path}/{category.slug}", parent.level + 1


@dataclass
class CascadeResult:
    """Descendants reached by a cascade.

    ``updated`` maps committed descendant ids to their slugs. ``failed`` maps
    ids that could not be committed, or whose children could not be read, to
    the error message. Subtrees below a failed node are not visited.
    """

    updated: Dict[UUID, str] = field(default_factory=dict)
    failed: Dict[UUID, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


class PathMaterializer:
    """Computes path/level and cascades them through descendants"""

    def __init__(self, category_repo: CategoryRepository):
        self.category_repo = category_repo

    def materialize(self, category: Category) -> Category:
        """
        Set path and level on a category from its current parent.

        The category is not persisted here.
        """
        parent = None
        if category.parent_id is not None:
            parent = self.category_repo.get_by_id(category.parent_id)
            if parent is None:
                raise ValidationError(
                    f"Parent category not found: {category.parent_id}",
                    reason=ValidationReason.PARENT_NOT_FOUND,
                )
        category.path, category.level = compute_path(category, parent)
        return category

    def cascade_descendants(self, category: Category, result: Optional[CascadeResult] = None) -> CascadeResult:
        """
        Recompute and persist path/level for every descendant of ``category``.

        Breadth-first with an explicit queue. Each child is committed on its
        own; a failed child is logged and its subtree skipped while the rest
        of the queue continues.
        """
        if result is None:
            result = CascadeResult()

        queue = deque([category])
        visited = {category.id}

        while queue:
            parent = queue.popleft()
            parent_id = parent.id
            try:
                children = self.category_repo.list_children(parent_id)
            except SQLAlchemyError as e:
                self.category_repo.rollback()
                logger.error(f"Failed to load children of category {parent_id} during cascade: {e}")
                result.failed[parent_id] = str(e)
                continue

            for child in children:
                child_id = child.id
                if child_id in visited:
                    logger.error(f"Category {child_id} reached twice during cascade; skipping")
                    continue
                visited.add(child_id)

                child.path, child.level = compute_path(child, parent)
                try:
                    self.category_repo.save(child)
                except SQLAlchemyError as e:
                    self.category_repo.rollback()
                    logger.error(f"Failed to cascade path to category {child_id}: {e}")
                    result.failed[child_id] = str(e)
                    continue

                result.updated[child_id] = child.slug
                queue.append(child)

        if result.failed:
            logger.warning(
                f"Cascade from category {category.id} left {len(result.failed)} "
                f"descendant(s) stale; updated {len(result.updated)}"
            )
        else:
            logger.info(f"Cascaded path from category {category.id} to {len(result.updated)} descendant(s)")
        return result
