"""Heuristic classification of driver and network errors.

Every function here is pure: it looks at an exception (its numeric code,
its message text, its type) and returns a :class:`Classification` naming the
failure category and a user-facing explanation, or ``None`` when no
heuristic applies. None of them raise.

Functions:
    check_port: Pre-flight check of a port against other products' defaults
    classify_sql_error: Connection-time MySQL/MariaDB errors
    classify_sql_operation_error: Query, update and listing errors
    classify_mongo_protocol_mismatch: Wrong protocol or unreachable MongoDB server
    classify_mongo_auth_error: MongoDB authentication and authorization errors
    format_error: Combine a classification with the underlying message
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from pymongo.errors import (
    NetworkTimeout,
    OperationFailure,
    ProtocolError,
    ServerSelectionTimeoutError,
)

from ..config.models import BackendType
from ..core.exceptions import ErrorKind

# Ports that belong to other database products, keyed by product name.
_NON_MONGO_PORTS = {
    3306: "MySQL/MariaDB",
    3307: "MySQL/MariaDB",
    5432: "PostgreSQL",
    1521: "Oracle",
    1433: "SQL Server",
}
_MONGO_PORT = 27017

# MySQL client/server error numbers
ER_DBACCESS_DENIED = 1044
ER_ACCESS_DENIED = 1045
ER_BAD_DB = 1049
ER_DUP_ENTRY = 1062
ER_PARSE = 1064
ER_HOST_NOT_PRIVILEGED = 1130
ER_TABLEACCESS_DENIED = 1142
ER_NO_SUCH_TABLE = 1146
ER_ROW_IS_REFERENCED = 1451
ER_NO_REFERENCED_ROW = 1452
CR_CONN_HOST_ERROR = 2003
CR_SERVER_GONE = 2006
CR_SERVER_LOST = 2013

# MongoDB server error codes
MONGO_UNAUTHORIZED = 13
MONGO_AUTHENTICATION_FAILED = 18
MONGO_NOT_PRIMARY = (10107, 10057)


@dataclass(frozen=True)
class Classification:
    """Classified failure: category plus user-facing explanation."""

    kind: ErrorKind
    message: str


def error_code(error: BaseException) -> Optional[int]:
    """Numeric error code of a driver exception, if it carries one.

    PyMySQL-family errors carry ``(code, message)`` in ``args``; pymongo
    ``OperationFailure`` exposes ``code``.
    """
    code = getattr(error, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    args = getattr(error, "args", ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return args[0]
    return None


def error_text(error: BaseException) -> str:
    """Underlying message of ``error`` on a single line."""
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        args = getattr(error, "args", ())
        if len(args) >= 2 and isinstance(args[0], int) and isinstance(args[1], str):
            message = args[1]
        else:
            message = str(error)
    if not message:
        message = type(error).__name__
    return " ".join(message.split())


def _is_timeout(error: BaseException) -> bool:
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        if isinstance(current, (asyncio.TimeoutError, TimeoutError)):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def check_port(backend: BackendType, port: int) -> Optional[Classification]:
    """Pre-flight check of ``port`` against the defaults of other products.

    Advisory only: a non-standard port that is not another product's
    default passes.
    """
    if backend is BackendType.MONGODB:
        product = _NON_MONGO_PORTS.get(port)
        if product is not None:
            return Classification(
                ErrorKind.WRONG_PORT,
                f"Port {port} is typically used for {product}, not MongoDB. "
                f"Please check your connection settings; MongoDB typically uses port {_MONGO_PORT}.",
            )
        return None

    if port == _MONGO_PORT:
        return Classification(
            ErrorKind.WRONG_PORT,
            f"Port {_MONGO_PORT} is typically used for MongoDB, not MySQL/MariaDB. "
            "Please check your connection settings; MySQL/MariaDB typically uses port 3306.",
        )
    return None


def classify_sql_error(error: BaseException, port: Optional[int] = None) -> Optional[Classification]:
    """Classify a MySQL/MariaDB connection failure.

    Checks the numeric error code first, then message text, then the port.
    """
    try:
        code = error_code(error)
        sqlstate = getattr(error, "sqlstate", None)
        message = error_text(error)
        lowered = message.lower()

        if code == ER_ACCESS_DENIED or sqlstate == "28000":
            return Classification(
                ErrorKind.AUTH_FAILED,
                "Authentication failed: invalid username or password. "
                "Please check your credentials and try again.",
            )
        if code == ER_HOST_NOT_PRIVILEGED or "is not allowed to connect" in lowered:
            return Classification(
                ErrorKind.AUTH_FAILED,
                "Access denied: your client address is not allowed to connect to this server. "
                "Ask the database administrator to grant access from your location.",
            )
        if code in (ER_DBACCESS_DENIED, ER_TABLEACCESS_DENIED):
            return Classification(
                ErrorKind.PERMISSION_DENIED,
                "Permission denied: the user may not access the requested database.",
            )
        if code == ER_BAD_DB or "unknown database" in lowered:
            return Classification(
                ErrorKind.UNKNOWN,
                "Unknown database: the specified database does not exist. "
                "Check the database name and that it exists on the server.",
            )
        if (
            code == CR_SERVER_LOST
            or _is_timeout(error)
            or "communication link failure" in lowered
            or "socket timeout" in lowered
            or "timed out" in lowered
        ):
            return Classification(
                ErrorKind.TIMEOUT,
                "Connection timeout: the database server did not respond in time. "
                "This can be caused by network issues, server load or a firewall.",
            )
        if code == CR_CONN_HOST_ERROR or "connection refused" in lowered:
            return Classification(
                ErrorKind.UNKNOWN,
                "Connection refused: the server is not running or a firewall is blocking the connection.",
            )
        if port == _MONGO_PORT:
            return Classification(
                ErrorKind.PROTOCOL_MISMATCH,
                f"Port {_MONGO_PORT} is typically used for MongoDB, not MySQL/MariaDB. "
                "MySQL/MariaDB typically uses port 3306.",
            )
    except Exception:
        return None
    return None


def classify_sql_operation_error(error: BaseException, operation: str = "query") -> Optional[Classification]:
    """Classify a failure raised while running ``operation`` on an open session."""
    try:
        code = error_code(error)
        if code == ER_PARSE:
            return Classification(ErrorKind.UNKNOWN, "SQL syntax error")
        if code == ER_NO_SUCH_TABLE:
            return Classification(ErrorKind.UNKNOWN, "Table not found")
        if code == ER_BAD_DB:
            return Classification(ErrorKind.UNKNOWN, "Database does not exist")
        if code in (ER_TABLEACCESS_DENIED, ER_DBACCESS_DENIED):
            return Classification(
                ErrorKind.PERMISSION_DENIED,
                f"Permission denied: insufficient privileges to {operation}",
            )
        if code in (ER_ROW_IS_REFERENCED, ER_NO_REFERENCED_ROW):
            return Classification(ErrorKind.UNKNOWN, "Foreign key constraint violation")
        if code == ER_DUP_ENTRY:
            return Classification(ErrorKind.UNKNOWN, "Duplicate entry")
        if code in (CR_SERVER_GONE, CR_SERVER_LOST) or _is_timeout(error):
            return Classification(
                ErrorKind.TIMEOUT,
                f"The server did not complete the {operation} in time or the connection was lost",
            )
        if "access denied" in error_text(error).lower():
            return Classification(
                ErrorKind.PERMISSION_DENIED,
                f"Permission denied: insufficient privileges to {operation}",
            )
    except Exception:
        return None
    return None


def classify_mongo_protocol_mismatch(error: BaseException) -> Optional[Classification]:
    """Detect a server that does not speak the MongoDB protocol, or never answered."""
    try:
        message = error_text(error)
        lowered = message.lower()

        if isinstance(error, ProtocolError) or "unexpected reply" in lowered or "opcode" in lowered:
            return Classification(
                ErrorKind.PROTOCOL_MISMATCH,
                "The server at this address does not appear to be MongoDB; it is likely "
                "MySQL/MariaDB or another database type. Use the matching database service.",
            )
        if "ssl handshake" in lowered or "protocol version" in lowered:
            return Classification(
                ErrorKind.PROTOCOL_MISMATCH,
                "Protocol error: the server does not appear to be using the MongoDB protocol.",
            )
        if (
            ("timed out" in lowered and "connecting" in lowered)
            or isinstance(error, NetworkTimeout)
            or (isinstance(error, ServerSelectionTimeoutError) and "timed out" in lowered)
        ):
            return Classification(
                ErrorKind.TIMEOUT,
                "Connection timed out: check that the address and port are correct, the server "
                "is running and reachable, and that this is a MongoDB server.",
            )
    except Exception:
        return None
    return None


def classify_mongo_auth_error(error: BaseException) -> Optional[Classification]:
    """Detect MongoDB authentication and authorization failures."""
    try:
        if isinstance(error, OperationFailure):
            code = error_code(error)
            if code == MONGO_UNAUTHORIZED:
                return Classification(
                    ErrorKind.PERMISSION_DENIED,
                    "Authorization error: the user does not have permission to perform this operation.",
                )
            if code == MONGO_AUTHENTICATION_FAILED:
                return Classification(
                    ErrorKind.AUTH_FAILED,
                    "Authentication failed: the username or password is incorrect.",
                )
            if code in MONGO_NOT_PRIMARY:
                return Classification(
                    ErrorKind.UNKNOWN,
                    "The server is not a primary node; this operation requires the replica set primary.",
                )

        lowered = error_text(error).lower()
        if "unauthorized" in lowered or "requires authentication" in lowered:
            return Classification(
                ErrorKind.AUTH_FAILED,
                "Authentication error: this operation requires authentication. "
                "Check that valid credentials were provided.",
            )
        if "authentication failed" in lowered or "auth failed" in lowered or "not authorized" in lowered:
            return Classification(
                ErrorKind.AUTH_FAILED,
                "Authentication failed: the credentials were rejected by the server.",
            )
    except Exception:
        return None
    return None


def is_mongo_authorization_error(error: BaseException) -> bool:
    """True when ``error`` means the session is valid but the command is not allowed."""
    if isinstance(error, OperationFailure) and error_code(error) == MONGO_UNAUTHORIZED:
        return True
    lowered = error_text(error).lower()
    return "unauthorized" in lowered or "requires authentication" in lowered or "not authorized" in lowered


def format_error(
    classification: Optional[Classification],
    error: BaseException,
    fallback_prefix: str,
) -> str:
    """Single human-readable line for ``error``.

    With a classification: the explanation followed by the underlying message.
    Without one: ``"<fallback_prefix>: <underlying message>"``.
    """
    detail = error_text(error)
    if classification is None:
        return f"{fallback_prefix}: {detail}"
    if not detail or detail in classification.message:
        return classification.message
    if classification.message.endswith("."):
        return f"{classification.message} ({detail})"
    return f"{classification.message}: {detail}"
