import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

DEFAULT_SNAPSHOT_FOLDER = "data/snapshots"


@dataclass
class ImportConfig:
    """Settings for one snapshot import run."""
    database_url: str
    snapshot_folder: str = DEFAULT_SNAPSHOT_FOLDER
    db_schema: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    statement_timeout_ms: Optional[int] = None
    connect_timeout: int = 30
    sql_echo: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "ImportConfig":
        """
        Build configuration from the environment (and a .env file if present).

        Keyword overrides win over environment values; ``None`` overrides are
        ignored so argparse defaults can be passed straight through.
        """
        load_dotenv()

        timeout = os.getenv('INVENTORY_STATEMENT_TIMEOUT_MS')
        values: Dict[str, Any] = {
            'database_url': os.getenv('DATABASE_URL'),
            'snapshot_folder': os.getenv('INVENTORY_SNAPSHOT_FOLDER', DEFAULT_SNAPSHOT_FOLDER),
            'db_schema': os.getenv('INVENTORY_DB_SCHEMA') or None,
            'pool_size': int(os.getenv('DB_POOL_SIZE', '5')),
            'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '10')),
            'statement_timeout_ms': int(timeout) if timeout else None,
            'connect_timeout': int(os.getenv('INVENTORY_CONNECT_TIMEOUT', '30')),
            'sql_echo': os.getenv('INVENTORY_SQL_ECHO', 'false').lower() == 'true',
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        if not values['database_url']:
            raise ValueError("DATABASE_URL environment variable is required")

        return cls(**values)
