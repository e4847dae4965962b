"""QueryCore - Multi-backend database connectivity and diagnostics.

QueryCore lets a caller hold connection profiles for relational (MySQL,
MariaDB) and document (MongoDB) databases, connect to them, and browse and
query their contents through one uniform service interface, with heuristic
error classification and a record of every connection attempt.

Modules:
    core: Base classes, exceptions and utilities
    config: Configuration models
    logging: Structured logging framework
    database: Backend services, error classifier and connection tracker
    diagnostics: Reachability probes and support reports
    session: Orchestrator owning the active service

Example:
    >>> from querycore import BackendType, ConnectionProfile, DatabaseSession
    >>> profile = ConnectionProfile(
    ...     name="shop", backend=BackendType.MYSQL, host="db.example",
    ...     port=3306, database="shop", username="root", password="x",
    ... )
    >>> session = DatabaseSession()
    >>> state = await session.connect(profile)
    >>> state.databases
    ('shop',)
"""

from . import config, core, database, logging
from .config import BackendType, ConnectionProfile, QueryCoreSettings, TimeoutPolicy
from .core import DatabaseConnectionError, ErrorKind, QueryCoreException
from .database import ConnectionTracker, DatabaseService, DatabaseServiceFactory, get_default_tracker
from .diagnostics import ReachabilityResult, build_diagnostics_report, probe_reachability
from .session import DatabaseSession, SessionState

__version__ = "0.1.0"
__title__ = "QueryCore"
__description__ = "Multi-backend database connectivity and diagnostics layer"
__author__ = "QueryCore Team"
__license__ = "MIT"

__all__ = [
    "core",
    "config",
    "database",
    "logging",
    "BackendType",
    "ConnectionProfile",
    "QueryCoreSettings",
    "TimeoutPolicy",
    "DatabaseConnectionError",
    "ErrorKind",
    "QueryCoreException",
    "ConnectionTracker",
    "DatabaseService",
    "DatabaseServiceFactory",
    "get_default_tracker",
    "ReachabilityResult",
    "build_diagnostics_report",
    "probe_reachability",
    "DatabaseSession",
    "SessionState",
    "__version__",
]
