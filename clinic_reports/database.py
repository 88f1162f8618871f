"""
Database Layer

Read-side database layer for the clinic source tables: a thread-safe SQLite
connection pool, schema initialisation and DataFrame-based query helpers.
The report engine only reads; the schema is created on first use.

Copyright: © 2025 Clinic Reports contributors
"""

import sqlite3
import logging
import threading
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
from contextlib import contextmanager
from datetime import datetime

import pandas as pd

from .config import config
from .database_schema import get_schema_sql, get_table_descriptions

# Register datetime adapter for Python 3.12+ compatibility
sqlite3.register_adapter(datetime, lambda dt: dt.isoformat())
sqlite3.register_adapter(pd.Timestamp, lambda ts: ts.isoformat())


class DatabaseConnectionPool:
    """Thread-safe SQLite connection pool"""

    def __init__(self, db_path: Path, max_connections: int = 10, timeout: float = 30.0):
        self.db_path = db_path
        self.max_connections = max_connections
        self.timeout = timeout
        self._pool: List[sqlite3.Connection] = []
        self._pool_lock = threading.Lock()
        self._created_connections = 0
        self.logger = logging.getLogger(self.__class__.__name__)

        db_path.parent.mkdir(parents=True, exist_ok=True)

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection"""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout,
            check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA journal_mode = {config.database.journal_mode}")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA temp_store = MEMORY")
        return conn

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool"""
        conn = None
        temp_connection = False
        try:
            with self._pool_lock:
                if self._pool:
                    conn = self._pool.pop()
                elif self._created_connections < self.max_connections:
                    conn = self._create_connection()
                    self._created_connections += 1

            if conn is None:
                # Pool exhausted, create temporary connection
                conn = self._create_connection()
                temp_connection = True

            yield conn

        except Exception as e:
            self.logger.error(f"Database error: {e}")
            if conn:
                try:
                    conn.rollback()
                except sqlite3.Error:
                    pass
            raise
        finally:
            if conn:
                if temp_connection:
                    conn.close()
                else:
                    with self._pool_lock:
                        if len(self._pool) < self.max_connections:
                            self._pool.append(conn)
                        else:
                            conn.close()
                            self._created_connections -= 1

    def close_all(self):
        """Close all connections in the pool"""
        with self._pool_lock:
            for conn in self._pool:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    self.logger.warning(f"Error closing connection: {e}")
            self._pool.clear()
            self._created_connections = 0

    def get_pool_stats(self) -> Dict[str, int]:
        """Get connection pool statistics for monitoring"""
        with self._pool_lock:
            return {
                'pool_size': len(self._pool),
                'created_connections': self._created_connections,
                'max_connections': self.max_connections,
                'in_use': self._created_connections - len(self._pool)
            }


class DatabaseManager:
    """
    Main database manager
    Owns the connection pool and the source table schema
    """

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path) if db_path else config.database.path
        self.pool = DatabaseConnectionPool(
            self.db_path,
            max_connections=config.database.max_connections,
            timeout=config.database.connection_timeout
        )
        self.logger = logging.getLogger(self.__class__.__name__)

        self.initialize_database()

    def initialize_database(self):
        """Initialize database schema"""
        try:
            with self.pool.get_connection() as conn:
                conn.executescript(get_schema_sql())
                conn.commit()
            self.logger.info(f"Database schema initialized at {self.db_path}")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    def read_dataframe(self, query: str, params: Optional[List[Any]] = None) -> pd.DataFrame:
        """
        Run a read query and return the result as a DataFrame.

        Missing values come back as None rather than NaN so that rows can be
        handed straight to record parsers.
        """
        with self.pool.get_connection() as conn:
            df = pd.read_sql_query(query, conn, params=params or [])
        return df.astype(object).where(pd.notna(df), None)

    def check_connection(self) -> bool:
        """Check that the database answers a trivial query"""
        try:
            with self.pool.get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            self.logger.warning(f"Database health check failed: {e}")
            return False

    def get_table_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get row counts and descriptions for every source table"""
        stats = {}
        with self.pool.get_connection() as conn:
            for table_name, description in get_table_descriptions().items():
                row: Tuple = conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()
                stats[table_name] = {
                    'row_count': row[0] if row else 0,
                    'description': description
                }
        return stats

    def close(self):
        """Close all database connections and cleanup resources"""
        self.pool.close_all()
        self.logger.info("Database manager closed - all connections released")


_db_manager: Optional[DatabaseManager] = None
_db_manager_lock = threading.Lock()


def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance"""
    global _db_manager
    with _db_manager_lock:
        if _db_manager is None:
            _db_manager = DatabaseManager()
        return _db_manager
