"""
PostgreSQL-backed storage, environments, maintenance and queries.
"""

from .combined_store import UPDATABLE_FIELDS, CombinedRecordStore
from .connection import DatabaseConnectionPool
from .environment import Environment, EnvironmentManager, writer_lock
from .ledger import Warehouse
from .query import OPERATORS_BY_TYPE, QueryFilter, QueryOperator, QueryService, queryable_fields
from .record_store import RecordStore
from .schema_mgmt import TABLE_NAMES, SchemaManager

__all__ = [
    "CombinedRecordStore",
    "DatabaseConnectionPool",
    "Environment",
    "EnvironmentManager",
    "OPERATORS_BY_TYPE",
    "QueryFilter",
    "QueryOperator",
    "QueryService",
    "queryable_fields",
    "RecordStore",
    "SchemaManager",
    "TABLE_NAMES",
    "UPDATABLE_FIELDS",
    "Warehouse",
    "writer_lock",
]
