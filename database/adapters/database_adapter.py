"""
Database adapter for the inventory store.

Wraps SQLAlchemy engine creation, connectivity checks and read-back
queries. PostgreSQL (through psycopg2) is the deployment target; SQLite
URLs are accepted for local runs and tests.
"""

import logging
from typing import Dict, Optional

import pandas as pd
from sqlalchemy import Engine, MetaData, create_engine, make_url, text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from inventory.config import ImportConfig
from inventory.exceptions import FatalRunError
from inventory.tables import create_tables

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    """
    Owns the SQLAlchemy engine used by an import run.

    Creating the adapter verifies that the driver loads and the database
    answers; either failure is a FatalRunError because no snapshot could
    be imported anyway.
    """

    def __init__(self, database_url: str, pool_size: int = 5, max_overflow: int = 10,
                 statement_timeout_ms: Optional[int] = None, connect_timeout: int = 30,
                 echo: bool = False):
        """
        Initialize the database connection.

        Args:
            database_url (str): SQLAlchemy connection URL
            pool_size (int): Number of connections to maintain in the pool
            max_overflow (int): Maximum overflow connections beyond pool_size
            statement_timeout_ms (int, optional): Per-statement timeout (PostgreSQL only)
            connect_timeout (int): Seconds to wait when opening a connection
            echo (bool): Log every SQL statement
        """
        self.database_url = database_url
        self.engine = self._create_engine(
            database_url, pool_size, max_overflow, statement_timeout_ms, connect_timeout, echo
        )

        # Test the connection immediately to catch configuration errors early
        self._test_connection()

        logger.info(f"Database adapter initialized for {self.engine.dialect.name}")

    def _create_engine(self, database_url: str, pool_size: int, max_overflow: int,
                       statement_timeout_ms: Optional[int], connect_timeout: int,
                       echo: bool) -> Engine:
        try:
            url = make_url(database_url)
            if url.get_backend_name() == "sqlite":
                return create_engine(url, echo=echo, connect_args={"timeout": connect_timeout})

            connect_args: Dict[str, object] = {"connect_timeout": connect_timeout}
            if statement_timeout_ms:
                connect_args["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"

            return create_engine(
                url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,  # Validates connections before use
                pool_recycle=3600,   # Recycle connections every hour
                connect_args=connect_args,
                echo=echo,
            )
        except (ArgumentError, ImportError) as e:
            logger.error(f"Cannot load database driver: {e}")
            raise FatalRunError(f"Cannot load database driver for {database_url!r}: {e}") from e

    def _test_connection(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
                version = conn.dialect.server_version_info
                logger.info(
                    f"Connected to {conn.dialect.name} "
                    f"{'.'.join(str(v) for v in version) if version else ''}".rstrip()
                )
        except SQLAlchemyError as e:
            logger.error(f"Database connection test failed: {e}")
            raise FatalRunError(f"Cannot connect to database: {e}") from e

    def create_tables(self, schema: Optional[str] = None) -> MetaData:
        """Create any missing inventory tables."""
        metadata = create_tables(self.engine, schema)
        logger.info(f"Ensured inventory tables exist in schema {schema or '<default>'}")
        return metadata

    def query_to_dataframe(self, query: str, params: Optional[Dict] = None) -> pd.DataFrame:
        """
        Execute a SQL query and return results as a pandas DataFrame.

        Args:
            query (str): SQL query to execute
            params (Dict, optional): Query parameters for safe parameter binding

        Returns:
            pd.DataFrame: Query results
        """
        try:
            with self.engine.connect() as conn:
                df = pd.read_sql_query(sql=text(query), con=conn, params=params or {})
            logger.debug(f"Query returned {len(df)} rows")
            return df

        except SQLAlchemyError as e:
            logger.error(f"Query failed: {e}")
            raise

    def close(self) -> None:
        """Dispose of the connection pool."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database adapter closed")


def create_database_adapter(config: ImportConfig) -> DatabaseAdapter:
    """Create a DatabaseAdapter from an ImportConfig."""
    return DatabaseAdapter(
        database_url=config.database_url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        statement_timeout_ms=config.statement_timeout_ms,
        connect_timeout=config.connect_timeout,
        echo=config.sql_echo,
    )
