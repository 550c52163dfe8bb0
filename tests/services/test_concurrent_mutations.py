# tests/services/test_concurrent_mutations.py
import threading
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from catalog.core.exceptions import ServerError, ValidationError, ValidationReason
from catalog.db.base import Base
from catalog.db.models import Category
from catalog.schemas.category import CategoryCreate, CategoryUpdate
from catalog.services.category_service import CategoryService
from catalog.services.locks import SubtreeLockRegistry


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """File-backed SQLite so every thread gets its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path}/catalog.db",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


def _seed(Session, registry):
    """Alpha > Alpha One > Alpha Two, and Beta > Beta One."""
    session = Session()
    try:
        service = CategoryService(session, locks=registry)
        alpha = service.create_category(CategoryCreate(name="Alpha"))
        alpha_one = service.create_category(CategoryCreate(name="Alpha One", parent_id=alpha.id))
        alpha_two = service.create_category(CategoryCreate(name="Alpha Two", parent_id=alpha_one.id))
        beta = service.create_category(CategoryCreate(name="Beta"))
        beta_one = service.create_category(CategoryCreate(name="Beta One", parent_id=beta.id))
        return {
            "alpha": alpha.id,
            "alpha_one": alpha_one.id,
            "alpha_two": alpha_two.id,
            "beta": beta.id,
            "beta_one": beta_one.id,
        }
    finally:
        session.close()


def _stored_tree(Session):
    session = Session()
    try:
        return {
            c.id: (c.parent_id, c.slug, c.path, c.level)
            for c in session.query(Category).all()
        }
    finally:
        session.close()


def _assert_consistent(tree):
    for parent_id, slug, path, level in tree.values():
        if parent_id is None:
            assert (path, level) == (f"/{slug}", 1)
        else:
            parent_path, parent_level = tree[parent_id][2], tree[parent_id][3]
            assert (path, level) == (f"{parent_path}/{slug}", parent_level + 1)


@pytest.mark.parametrize("run", range(5))
def test_crossing_moves_and_rename_serialize(file_session_factory, run):
    """Two moves that would form a cycle together: one wins, the other is rejected."""
    registry = SubtreeLockRegistry(timeout_seconds=30)
    ids = _seed(file_session_factory, registry)
    start = threading.Barrier(3)
    outcomes = {}

    def run_operation(name, operation):
        session = file_session_factory()
        service = CategoryService(session, locks=registry)
        try:
            start.wait(5)
            outcomes[name] = operation(service)
        except Exception as e:
            outcomes[name] = e
        finally:
            session.close()

    operations = {
        "alpha_under_beta": lambda s: s.move_category(ids["alpha"], ids["beta_one"]),
        "beta_under_alpha": lambda s: s.move_category(ids["beta"], ids["alpha_two"]),
        "rename": lambda s: s.update_category(ids["alpha_one"], CategoryUpdate(name="Alpha First")),
    }
    threads = [
        threading.Thread(target=run_operation, args=(name, operation))
        for name, operation in operations.items()
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)

    moves = [outcomes["alpha_under_beta"], outcomes["beta_under_alpha"]]
    rejected = [outcome for outcome in moves if isinstance(outcome, Exception)]
    assert len(rejected) == 1
    assert isinstance(rejected[0], ValidationError)
    assert rejected[0].validation_reason == ValidationReason.CYCLIC_REFERENCE
    assert not isinstance(outcomes["rename"], Exception)
    assert outcomes["rename"].changed is True

    tree = _stored_tree(file_session_factory)
    _assert_consistent(tree)
    assert tree[ids["alpha_one"]][1] == "alpha-first"
    assert tree[ids["alpha_two"]][2].endswith("/alpha/alpha-first/alpha-two")
    assert len(registry) == 0


def test_lock_scope_change_retries(category_service, components_tree):
    """A tree that changes root while waiting for its locks is locked again."""
    root = frozenset({components_tree["components"].id})
    scopes = [frozenset({"moved-away"}), root, root, root]

    with patch.object(category_service, "_lock_scope", side_effect=scopes) as lock_scope:
        result = category_service.move_category(components_tree["ssd"].id, components_tree["hdd"].id)

    assert lock_scope.call_count == 4
    assert result.category.path == "/components/storage/hdd/ssd"


def test_lock_scope_that_keeps_changing_fails(category_service, components_tree, db_session):
    first = frozenset({"first"})
    second = frozenset({"second"})
    before = {c.id: c.path for c in db_session.query(Category).all()}

    with patch.object(category_service, "_lock_scope", side_effect=[first, second, second, first, first, second]):
        with pytest.raises(ServerError):
            category_service.move_category(components_tree["ssd"].id, components_tree["hdd"].id)

    db_session.expire_all()
    assert {c.id: c.path for c in db_session.query(Category).all()} == before
