"""
QueryCore Database Layer

Uniform access to relational (MySQL, MariaDB) and document (MongoDB)
databases: one service per backend family, heuristic error
classification, and a process-wide record of connection attempts.

Supported Backends:
- MySQL / MariaDB (PyMySQL)
- MongoDB (pymongo asyncio client)
"""

from .base import DatabaseService
from .classifier import (
    Classification,
    check_port,
    classify_mongo_auth_error,
    classify_mongo_protocol_mismatch,
    classify_sql_error,
    classify_sql_operation_error,
    format_error,
)
from .connectors import MariaDBService, MongoDBService, MySQLService
from .factory import DatabaseServiceFactory, create_service
from .models import ActiveSession, QueryRows, RowMap, TableStructure
from .tracker import AttemptStatus, ConnectionAttempt, ConnectionTracker, get_default_tracker

__all__ = [
    # Core classes
    "DatabaseService",
    "DatabaseServiceFactory",
    "create_service",
    # Services
    "MySQLService",
    "MariaDBService",
    "MongoDBService",
    # Models
    "ActiveSession",
    "QueryRows",
    "RowMap",
    "TableStructure",
    # Tracking
    "AttemptStatus",
    "ConnectionAttempt",
    "ConnectionTracker",
    "get_default_tracker",
    # Classification
    "Classification",
    "check_port",
    "classify_sql_error",
    "classify_sql_operation_error",
    "classify_mongo_protocol_mismatch",
    "classify_mongo_auth_error",
    "format_error",
]
