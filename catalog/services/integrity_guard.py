# catalog/services/integrity_guard.py
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from catalog.core.exceptions import NotFoundError, ValidationError, ValidationReason
from catalog.core.logging import get_logger
from catalog.db.repositories.category_repository import CategoryRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReparentCheck:
    """Outcome of a reparent check; truthy when the move is allowed"""

    allowed: bool
    reason: Optional[ValidationReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def raise_for_failure(self) -> None:
        if not self.allowed:
            raise ValidationError(self.message, reason=self.reason)


ALLOWED = ReparentCheck(allowed=True)


class IntegrityGuard:
    """Cycle and self-parent detection for parent reassignment.

    Reads only from the tree store, never from the cache, and writes nothing.
    """

    def __init__(self, category_repo: CategoryRepository):
        self.category_repo = category_repo

    def can_reparent(self, category_id: UUID, candidate_parent_id: Optional[UUID]) -> ReparentCheck:
        """
        Check whether ``category_id`` may be placed under ``candidate_parent_id``.

        Walks the ancestor chain from the candidate upward. The walk is bounded
        by the number of stored categories; a chain that runs past the bound,
        revisits a node or points at a missing row is reported as cyclic.

        Raises:
            NotFoundError: if ``category_id`` does not exist
        """
        if self.category_repo.get_by_id(category_id) is None:
            raise NotFoundError(f"Category not found: {category_id}")

        if candidate_parent_id is None:
            return ALLOWED

        if candidate_parent_id == category_id:
            return ReparentCheck(
                allowed=False,
                reason=ValidationReason.SELF_PARENT,
                message="A category cannot be its own parent",
            )

        current = self.category_repo.get_by_id(candidate_parent_id)
        if current is None:
            return ReparentCheck(
                allowed=False,
                reason=ValidationReason.PARENT_NOT_FOUND,
                message=f"Parent category not found: {candidate_parent_id}",
            )

        max_hops = self.category_repo.count() + 1
        seen = set()
        hops = 0
        while True:
            if current.id == category_id:
                return ReparentCheck(
                    allowed=False,
                    reason=ValidationReason.CYCLIC_REFERENCE,
                    message="Circular reference detected in category hierarchy",
                )
            if current.id in seen or hops >= max_hops:
                return self._corrupted(candidate_parent_id, current.id)
            seen.add(current.id)

            if current.parent_id is None:
                return ALLOWED

            parent = self.category_repo.get_by_id(current.parent_id)
            if parent is None:
                return self._corrupted(candidate_parent_id, current.id)
            current = parent
            hops += 1

    def _corrupted(self, candidate_parent_id: UUID, at_id: UUID) -> ReparentCheck:
        logger.error(
            f"Corrupted ancestor chain above category {candidate_parent_id} (stopped at {at_id}); rejecting move"
        )
        return ReparentCheck(
            allowed=False,
            reason=ValidationReason.CYCLIC_REFERENCE,
            message="Ancestor chain of the new parent is corrupted",
        )
