"""
Schema compatibility layer.

Introspects the deployed target tables once per run and narrows generated
writes to the columns that actually exist, so the importer tolerates minor
version skew between itself and a given deployment.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from sqlalchemy import Connection, Engine, MetaData, inspect
from sqlalchemy.exc import NoSuchTableError

from .exceptions import FatalRunError, SchemaDriftWarning
from .tables import TABLE_NAMES, build_metadata, get_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaDescriptor:
    """
    Column sets present in each target table, discovered for one run.

    Instances are immutable and passed explicitly through the pipeline.
    """
    columns: Mapping[str, FrozenSet[str]]
    metadata: MetaData
    schema: Optional[str] = None

    def has_column(self, table: str, column: str) -> bool:
        return column in self.columns.get(table, frozenset())

    def missing_columns(self, table: str) -> List[str]:
        """Expected columns of ``table`` that the deployed schema lacks."""
        expected = get_table(self.metadata, table).c.keys()
        return [name for name in expected if not self.has_column(table, name)]

    def narrow(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Drop entries of ``row`` whose column is absent from the live table."""
        present = self.columns.get(table, frozenset())
        return {name: value for name, value in row.items() if name in present}

    @classmethod
    def from_metadata(cls, metadata: MetaData) -> "SchemaDescriptor":
        """Descriptor that assumes every catalog column is deployed."""
        columns = {
            name: frozenset(get_table(metadata, name).c.keys()) for name in TABLE_NAMES
        }
        return cls(columns=columns, metadata=metadata, schema=metadata.schema)


def discover_schema(bind: Union[Engine, Connection],
                    schema: Optional[str] = None) -> SchemaDescriptor:
    """
    Query the live column catalog of every target table.

    Each expected column missing from the deployment is logged once as a
    SchemaDriftWarning. A missing table cannot be written around and aborts
    the run.
    """
    metadata = build_metadata(schema)
    inspector = inspect(bind)
    columns: Dict[str, FrozenSet[str]] = {}
    missing_tables = []

    for table in TABLE_NAMES:
        try:
            live = inspector.get_columns(table, schema=schema)
        except NoSuchTableError:
            live = []
        if not live:
            missing_tables.append(table)
            continue
        columns[table] = frozenset(col["name"] for col in live)

    if missing_tables:
        raise FatalRunError(
            f"Target tables not found in schema {schema or '<default>'}: "
            f"{', '.join(missing_tables)}"
        )

    descriptor = SchemaDescriptor(columns=columns, metadata=metadata, schema=schema)

    drift: List[Tuple[str, str]] = [
        (table, column)
        for table in TABLE_NAMES
        for column in descriptor.missing_columns(table)
    ]
    for table, column in drift:
        message = (
            f"Column {table}.{column} is not present in the deployed schema; "
            f"writes to it will be skipped"
        )
        logger.warning(message, extra={"category": SchemaDriftWarning.__name__})
        warnings.warn(message, SchemaDriftWarning, stacklevel=2)

    logger.info(
        f"🔍 Discovered schema for {len(columns)} tables "
        f"({len(drift)} expected column(s) missing)"
    )
    return descriptor
