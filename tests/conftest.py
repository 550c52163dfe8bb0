# tests/conftest.py
import fnmatch
import os
import sys
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep test logs out of the working tree
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "catalog-test-logs"))

# Add project root to Python path
project_root = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(project_root))

from catalog.db.base import Base
from catalog.db.models import Category
from catalog.schemas.category import CategoryCreate
from catalog.services.cache_service import CategoryCache
from catalog.services.category_service import CategoryService
from catalog.services.consistency_service import ConsistencyService
from catalog.services.locks import SubtreeLockRegistry


class FakeRedis:
    """Dict-backed stand-in for the Redis calls the category cache makes"""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.deleted = []

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            self.deleted.append(key)
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def scan_iter(self, match=None):
        return [key for key in list(self.store) if match is None or fnmatch.fnmatchcase(key, match)]

    def close(self):
        pass


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite engine with a fresh schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a test database session."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()

    yield session

    session.close()


@pytest.fixture(scope="function")
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def category_cache(fake_redis):
    return CategoryCache(fake_redis, ttl_seconds=3600)


@pytest.fixture(scope="function")
def lock_registry():
    return SubtreeLockRegistry(timeout_seconds=5)


@pytest.fixture(scope="function")
def category_service(db_session, category_cache, lock_registry):
    """Create a category service for testing."""
    return CategoryService(db_session, cache=category_cache, locks=lock_registry)


@pytest.fixture(scope="function")
def consistency_service(db_session, category_cache, lock_registry):
    """Create a consistency service sharing the category service's cache and locks."""
    return ConsistencyService(db_session, cache=category_cache, locks=lock_registry)


@pytest.fixture(scope="function")
def make_category(category_service):
    """Create a category by name under an optional parent."""

    def _make(name, parent=None, **kwargs):
        parent_id = parent.id if parent is not None else None
        return category_service.create_category(
            CategoryCreate(name=name, parent_id=parent_id, **kwargs)
        )

    return _make


@pytest.fixture(scope="function")
def components_tree(make_category):
    """Components > Storage > (SSD, HDD), plus a separate Peripherals root."""
    components = make_category("Components")
    storage = make_category("Storage", components)
    ssd = make_category("SSD", storage)
    hdd = make_category("HDD", storage)
    peripherals = make_category("Peripherals")
    return {
        "components": components,
        "storage": storage,
        "ssd": ssd,
        "hdd": hdd,
        "peripherals": peripherals,
    }


@pytest.fixture(scope="function")
def assert_tree_consistent(db_session):
    """Check every stored category's path and level against its parent."""

    def _check():
        db_session.expire_all()
        categories = {c.id: c for c in db_session.query(Category).all()}
        for category in categories.values():
            if category.parent_id is None:
                assert category.path == f"/{category.slug}"
                assert category.level == 1
            else:
                parent = categories[category.parent_id]
                assert category.path == f"{parent.path}/{category.slug}"
                assert category.level == parent.level + 1
        return categories

    return _check
