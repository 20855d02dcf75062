# =======================================================================================
# nsems/database.py - Database Management
# =======================================================================================
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
from typing import Iterable
from .config import Config

class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, url: str, cfg: Config):
        self.url = url
        if url.startswith("sqlite"):
            # sqlite connections are shared with the worker threads
            self.engine: Engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                future=True,
            )
        else:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=cfg.DB_POOL_SIZE,
                max_overflow=cfg.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
                isolation_level="READ COMMITTED",
                future=True,
            )

    @contextmanager
    def get_connection(self):
        """Get a database connection with automatic cleanup."""
        with self.engine.begin() as conn:
            yield conn

    def execute(self, query: str, params: dict = None) -> int:
        """Execute a write in its own transaction; returns affected rows."""
        with self.get_connection() as conn:
            return conn.execute(text(query), params or {}).rowcount

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

    def fetch_all(self, query: str, params: dict = None):
        """Fetch all results."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().all()

    def create_schema(self, statements: Iterable[str]) -> None:
        """Run DDL statements in one transaction."""
        with self.get_connection() as conn:
            for stmt in statements:
                conn.execute(text(stmt))

    def dispose(self) -> None:
        self.engine.dispose()
