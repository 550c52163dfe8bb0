# tests/services/test_path_materializer.py
from uuid import uuid4
import pytest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from catalog.core.exceptions import ValidationError, ValidationReason
from catalog.db.models import Category
from catalog.db.repositories.category_repository import CategoryRepository
from catalog.services.path_materializer import CascadeResult, PathMaterializer, compute_path


@pytest.fixture
def category_repo(db_session):
    return CategoryRepository(db_session)


@pytest.fixture
def materializer(category_repo):
    return PathMaterializer(category_repo)


def test_compute_path_for_root():
    assert compute_path(Category(slug="components"), None) == ("/components", 1)


def test_compute_path_for_child():
    parent = Category(slug="storage", path="/components/storage", level=2)

    assert compute_path(Category(slug="ssd"), parent) == ("/components/storage/ssd", 3)


def test_materialize_reads_parent(materializer, components_tree):
    category = Category(name="NVMe", slug="nvme", parent_id=components_tree["ssd"].id)

    materializer.materialize(category)

    assert category.path == "/components/storage/ssd/nvme"
    assert category.level == 4


def test_materialize_unknown_parent(materializer):
    with pytest.raises(ValidationError) as exc_info:
        materializer.materialize(Category(name="Lost", slug="lost", parent_id=uuid4()))

    assert exc_info.value.validation_reason == ValidationReason.PARENT_NOT_FOUND


def _build_chain(db_session, depth):
    """Insert a single-branch chain of ``depth`` categories with correct paths."""
    nodes = []
    parent = None
    for index in range(depth):
        node = Category(name=f"Node {index}", slug=f"n{index}", parent_id=parent.id if parent else None)
        node.path, node.level = compute_path(node, parent)
        db_session.add(node)
        db_session.flush()
        nodes.append(node)
        parent = node
    db_session.commit()
    return nodes


def test_cascade_handles_chain_deeper_than_recursion_limit(db_session, category_repo, materializer):
    # Deeper than the default interpreter recursion limit
    depth = 1200
    nodes = _build_chain(db_session, depth)
    root = nodes[0]

    root.slug = "top"
    materializer.materialize(root)
    category_repo.save(root)
    result = materializer.cascade_descendants(root)

    assert result.complete
    assert len(result.updated) == depth - 1

    deepest = category_repo.get_by_id(nodes[-1].id)
    assert deepest.level == depth
    assert deepest.path.startswith("/top/n1/n2/")
    assert deepest.path.endswith(f"/n{depth - 1}")


def test_cascade_visits_each_descendant_once(db_session, category_repo, materializer, components_tree, make_category):
    make_category("NVMe", components_tree["ssd"])
    make_category("SATA", components_tree["ssd"])
    storage = category_repo.get_by_id(components_tree["storage"].id)

    with patch.object(category_repo, "save", wraps=category_repo.save) as save:
        result = materializer.cascade_descendants(storage)

    saved_ids = [call.args[0].id for call in save.call_args_list]
    assert len(saved_ids) == len(set(saved_ids)) == 4
    assert set(result.updated) == set(saved_ids)


def test_cascade_failure_skips_subtree_and_continues(db_session, category_repo, materializer, components_tree, make_category):
    ssd_id = components_tree["ssd"].id
    make_category("NVMe", components_tree["ssd"])
    sata = make_category("SATA", components_tree["hdd"])

    storage = category_repo.get_by_id(components_tree["storage"].id)
    storage.parent_id = None
    materializer.materialize(storage)
    category_repo.save(storage)

    original_save = category_repo.save

    def flaky_save(category):
        if category.id == ssd_id:
            raise OperationalError("UPDATE categories", {}, Exception("deadlock detected"))
        return original_save(category)

    result = CascadeResult()
    with patch.object(category_repo, "save", side_effect=flaky_save):
        materializer.cascade_descendants(storage, result)

    assert set(result.failed) == {ssd_id}
    assert set(result.updated) == {components_tree["hdd"].id, sata.id}
    assert "deadlock detected" in result.failed[ssd_id]

    db_session.expire_all()
    assert category_repo.get_by_id(sata.id).path == "/storage/hdd/sata"
    assert category_repo.get_by_id(ssd_id).path == "/components/storage/ssd"


def test_cascade_stops_on_corrupted_cycle(db_session, category_repo, materializer, make_category):
    first = make_category("First")
    second = make_category("Second", first)

    row = category_repo.get_by_id(first.id)
    row.parent_id = second.id
    db_session.commit()

    result = materializer.cascade_descendants(category_repo.get_by_id(first.id))

    assert set(result.updated) == {second.id}
