# catalog/services/consistency_service.py
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID
from sqlalchemy.exc import SQLAlchemyError
from catalog.core.logging import get_logger
from catalog.db.models.category import Category
from catalog.db.repositories.category_repository import CategoryRepository
from catalog.services.cache_service import CategoryCache
from catalog.services.locks import SubtreeLockRegistry
from catalog.services.path_materializer import compute_path

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Summary of a consistency sweep"""

    checked: int = 0
    repaired: Dict[UUID, str] = field(default_factory=dict)
    unreachable: List[UUID] = field(default_factory=list)
    failed_roots: Dict[UUID, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "repaired": [str(category_id) for category_id in self.repaired],
            "unreachable": [str(category_id) for category_id in self.unreachable],
            "failed_roots": {str(k): v for k, v in self.failed_roots.items()},
        }


class ConsistencyService:
    """Repairs stale materialized paths left behind by interrupted cascades.

    Each root tree is walked under its lock, every node's expected path and
    level is recomputed from its parent, and the stale rows of that tree are
    written back in one transaction.
    """

    def __init__(
        self,
        db_session,
        cache: Optional[CategoryCache] = None,
        locks: Optional[SubtreeLockRegistry] = None,
    ):
        self.category_repo = CategoryRepository(db_session)
        self.cache = cache if cache is not None else CategoryCache()
        self.locks = locks if locks is not None else SubtreeLockRegistry()

    def sweep(self) -> SweepReport:
        """Check every category reachable from a root and repair stale rows"""
        report = SweepReport()
        visited = set()
        affected: Dict[UUID, str] = {}

        root_ids = [root.id for root in self.category_repo.list_children(None)]
        for root_id in root_ids:
            with self.locks.hold([root_id]):
                try:
                    self._sweep_tree(root_id, report, visited, affected)
                except SQLAlchemyError as e:
                    self.category_repo.rollback()
                    logger.error(f"Consistency sweep failed for tree {root_id}: {e}")
                    report.failed_roots[root_id] = str(e)

        self.category_repo.refresh_state()
        all_ids = {category.id for category in self.category_repo.list(include_inactive=True)}
        report.unreachable = sorted(all_ids - visited, key=str)
        if report.unreachable:
            logger.error(
                f"{len(report.unreachable)} categories are not reachable from any root "
                f"(cycle or dangling parent): {[str(i) for i in report.unreachable]}"
            )

        if report.repaired:
            self.cache.invalidate_many(report.repaired)
            self.cache.invalidate_many(affected)
            self.cache.invalidate_listing()
        logger.info(
            f"Consistency sweep checked {report.checked} categories, repaired {len(report.repaired)}"
        )
        return report

    def _sweep_tree(self, root_id: UUID, report: SweepReport, visited: set, affected: Dict[UUID, str]) -> None:
        """Repair one tree; ``affected`` collects the parents and children of repaired rows"""
        self.category_repo.refresh_state()
        root = self.category_repo.get_by_id(root_id)
        if root is None or root.parent_id is not None:
            # Moved or deleted since the root list was read
            return

        stale: List[Category] = []
        neighbours: Dict[UUID, str] = {}
        queue = deque([(root, None)])
        visited.add(root.id)
        while queue:
            category, parent = queue.popleft()
            report.checked += 1

            expected_path, expected_level = compute_path(category, parent)
            if category.path != expected_path or category.level != expected_level:
                logger.warning(
                    f"Repairing category {category.id}: path {category.path!r} -> {expected_path!r}, "
                    f"level {category.level} -> {expected_level}"
                )
                category.path, category.level = expected_path, expected_level
                stale.append(category)
                if parent is not None:
                    neighbours[parent.id] = parent.slug

            children = self.category_repo.list_children(category.id)
            if stale and stale[-1] is category:
                neighbours.update((child.id, child.slug) for child in children)
            for child in children:
                if child.id in visited:
                    continue
                visited.add(child.id)
                queue.append((child, category))

        if stale:
            repaired = {category.id: category.slug for category in stale}
            self.category_repo.save_all(stale)
            report.repaired.update(repaired)
            affected.update(neighbours)
