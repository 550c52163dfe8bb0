"""Explicit handle over the store, cache and locks.

Build one per process, ``open()`` it at start, ``close()`` it at shutdown,
and create services from it per unit of work.
"""
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy.orm import Session
from catalog.core.config import Settings, settings as default_settings
from catalog.core.logging import get_logger
from catalog.db.base import create_db_engine, create_session_factory
from catalog.services.cache_service import CategoryCache
from catalog.services.category_service import CategoryService
from catalog.services.consistency_service import ConsistencyService
from catalog.services.locks import SubtreeLockRegistry

logger = get_logger(__name__)


class CatalogContext:
    """Owns the engine, session factory, Redis cache and lock registry"""

    def __init__(self, settings: Optional[Settings] = None, cache: Optional[CategoryCache] = None):
        self.settings = settings or default_settings
        self.engine = None
        self.SessionLocal = None
        self.cache = cache
        self.locks = SubtreeLockRegistry(timeout_seconds=self.settings.LOCK_TIMEOUT_SECONDS)

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "CatalogContext":
        if self.is_open:
            return self

        self.engine = create_db_engine(
            self.settings.DATABASE_URL,
            min_connections=self.settings.DB_MIN_CONNECTIONS,
            max_connections=self.settings.DB_MAX_CONNECTIONS,
            echo=self.settings.DB_ECHO,
        )
        self.SessionLocal = create_session_factory(self.engine)

        if self.cache is None:
            if self.settings.CACHE_ENABLED:
                self.cache = CategoryCache.from_url(
                    self.settings.cache_redis_url, ttl_seconds=self.settings.CACHE_TTL_SECONDS
                )
            else:
                logger.info("Category cache disabled by configuration")
                self.cache = CategoryCache(None, ttl_seconds=self.settings.CACHE_TTL_SECONDS)

        logger.info("Catalog context opened")
        return self

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.SessionLocal = None
        logger.info("Catalog context closed")

    def __enter__(self) -> "CatalogContext":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Create a database session with proper cleanup"""
        if not self.is_open:
            raise RuntimeError("CatalogContext is not open")
        db_session = self.SessionLocal()
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise
        finally:
            db_session.close()

    def category_service(self, db_session: Session) -> CategoryService:
        return CategoryService(db_session, cache=self.cache, locks=self.locks)

    def consistency_service(self, db_session: Session) -> ConsistencyService:
        return ConsistencyService(db_session, cache=self.cache, locks=self.locks)
