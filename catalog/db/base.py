from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy import create_engine

# Create declarative base for models
Base = declarative_base()


def create_db_engine(database_url: str, min_connections: int = 5, max_connections: int = 20, echo: bool = False):
    """
    Create a SQLAlchemy engine for the category store.

    Pool sizing only applies to server databases; SQLite picks its own pool.
    """
    engine_kwargs = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = min_connections
        engine_kwargs["max_overflow"] = max_connections - min_connections
    return create_engine(database_url, **engine_kwargs)


def create_session_factory(engine):
    """Create a session factory bound to the given engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
