"""MongoDB database service over pymongo's asyncio client.

Connecting walks three tiers, stopping at the first one that answers a
``ping``:

1. ``primary``: host/port options plus a credential from the strategy chain
   (no credential at all for anonymous profiles)
2. ``legacy``: an explicit connection string forcing the legacy mechanism
3. ``anonymous``: a bare client with no credentials

A failure that classifies as a protocol mismatch, a timeout or an
authentication problem ends the walk immediately; retrying another
mechanism against the wrong server or with the wrong password only delays
the error.

Queries are JSON documents (MongoDB extended JSON is accepted)::

    {"collection": "users", "find": {"age": {"$gt": 30}}}
    {"collection": "users", "filter": {"_id": 1}, "update": {"$set": {"age": 31}}}
"""

from typing import Any, Dict, List, Optional

from bson import json_util
from bson.errors import BSONError
from pymongo import AsyncMongoClient

from ...config.models import BackendType, ConnectionProfile
from ...core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCodes,
    ErrorKind,
    OperationError,
    PermissionDeniedError,
    QueryError,
)
from ..base import DatabaseService
from ..classifier import (
    Classification,
    classify_mongo_auth_error,
    classify_mongo_protocol_mismatch,
    error_text,
    format_error,
    is_mongo_authorization_error,
)
from ..models import ActiveSession, QueryRows, TableStructure
from ..values import plain_row, type_name
from .mongo_auth import AUTH_DATABASE, build_credential, build_legacy_uri


class MongoDBService(DatabaseService):
    """MongoDB database service with an authentication fallback chain."""

    component_name = "MongoDBService"
    backend = BackendType.MONGODB
    driver_name = "pymongo"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._active_database: Optional[str] = None

    @property
    def active_database(self) -> Optional[str]:
        """Database used by queries that do not name one."""
        if self._active_database:
            return self._active_database
        profile = self.profile
        return profile.database if profile and profile.database else None

    def _client_options(self) -> Dict[str, Any]:
        timeouts = self.config
        return {
            "connectTimeoutMS": timeouts.connect_timeout_ms,
            "socketTimeoutMS": timeouts.socket_timeout_ms,
            "serverSelectionTimeoutMS": timeouts.server_selection_timeout_ms,
            "maxIdleTimeMS": timeouts.max_idle_time_ms,
            "maxPoolSize": timeouts.max_pool_size,
            "w": 1,
            "appname": "querycore",
        }

    def _create_client(self, *args: Any, **kwargs: Any) -> Any:
        return AsyncMongoClient(*args, **kwargs)

    @staticmethod
    def _terminal(error: BaseException) -> Optional[Classification]:
        return classify_mongo_protocol_mismatch(error) or classify_mongo_auth_error(error)

    def _connection_error(
        self,
        classification: Optional[Classification],
        error: BaseException,
        profile: ConnectionProfile,
    ) -> DatabaseConnectionError:
        return DatabaseConnectionError(
            format_error(classification, error, "Failed to connect to MongoDB"),
            kind=classification.kind if classification else ErrorKind.UNKNOWN,
            context={"host": profile.host, "port": profile.port, "database": profile.database},
            cause=error,
        )

    # Connection

    async def _open_session(self, profile: ConnectionProfile) -> ActiveSession:
        self._active_database = None
        try:
            credential = build_credential(profile.username, profile.password_value, AUTH_DATABASE)
        except ConfigurationError as e:
            raise DatabaseConnectionError(
                e.message, kind=ErrorKind.AUTH_FAILED, context={"host": profile.host}, cause=e
            ) from e

        primary_options = credential.client_options() if credential else {}
        tiers = (
            ("primary", (), {"host": profile.host, "port": profile.port, **primary_options}),
            ("legacy", (build_legacy_uri(profile, self.config),), {}),
            ("anonymous", (), {"host": profile.host, "port": profile.port}),
        )

        last_error: Optional[Exception] = None
        for tier, args, kwargs in tiers:
            try:
                return await self._attempt(profile, tier, *args, **kwargs)
            except Exception as e:
                terminal = self._terminal(e)
                if terminal is not None:
                    raise self._connection_error(terminal, e, profile) from e
                self.logger.warning("MongoDB connection tier failed", tier=tier, error=error_text(e))
                last_error = e

        raise DatabaseConnectionError(
            f"All MongoDB connection attempts failed: {error_text(last_error)}",
            kind=ErrorKind.UNKNOWN,
            context={"host": profile.host, "port": profile.port},
            cause=last_error,
        ) from last_error

    async def _attempt(self, profile: ConnectionProfile, tier: str, *args: Any, **kwargs: Any) -> ActiveSession:
        client = self._create_client(*args, **self._client_options(), **kwargs)
        try:
            await client.admin.command("ping")
            version = await self._server_version(client)
        except BaseException:
            await self._close_quietly(client)
            raise
        return ActiveSession(handle=client, profile=profile, server_version=version, extra={"auth_tier": tier})

    async def _server_version(self, client: Any) -> str:
        try:
            info = await client.admin.command("buildInfo")
            return f"MongoDB {info['version']}"
        except Exception as e:
            self.logger.debug("buildInfo unavailable", error=error_text(e))
            return "MongoDB"

    async def _close_quietly(self, client: Any) -> None:
        try:
            await client.close()
        except Exception as e:
            self.logger.debug("Ignoring error while closing failed client", error=error_text(e))

    async def _ping(self, handle: Any) -> bool:
        await handle.admin.command("ping")
        return True

    async def _close_handle(self, handle: Any) -> None:
        self._active_database = None
        await handle.close()

    # Helpers

    def _wrap(self, error: BaseException, operation: str, fallback_prefix: str) -> OperationError:
        return self._operation_error(error, classify_mongo_auth_error(error), operation, fallback_prefix)

    def _parse(self, query: str, operation: str) -> Dict[str, Any]:
        try:
            document = json_util.loads(query)
        except (ValueError, TypeError, BSONError) as e:
            raise QueryError(
                f"Invalid query format. Query must be valid JSON: {error_text(e)}",
                code=ErrorCodes.INVALID_QUERY,
                context={"operation": operation},
                cause=e,
            ) from e
        if not isinstance(document, dict):
            raise QueryError(
                "Invalid query format. Query must be a JSON object.",
                code=ErrorCodes.INVALID_QUERY,
                context={"operation": operation},
            )
        collection = document.get("collection")
        if not isinstance(collection, str) or not collection:
            raise QueryError(
                "Query format incorrect. Please specify the 'collection' field.",
                code=ErrorCodes.INVALID_QUERY,
                context={"operation": operation},
            )
        return document

    def _database_name(self, requested: Any = None) -> str:
        name = requested if isinstance(requested, str) and requested else self.active_database
        if not name:
            raise QueryError(
                "No database selected. Set a database on the connection or add a 'database' field to the query.",
                code=ErrorCodes.INVALID_QUERY,
            )
        return name

    # Operations

    async def list_databases(self) -> List[str]:
        session = self._require_session()
        if session.profile.database:
            return [session.profile.database]

        client = session.handle
        try:
            return list(await client.list_database_names())
        except Exception as e:
            if not is_mongo_authorization_error(e):
                raise self._wrap(e, "list_databases", "Failed to list databases") from e
            self.logger.warning("Not authorized to list databases, using the current database", error=error_text(e))

        try:
            await client[AUTH_DATABASE].command("ping")
        except Exception as e:
            raise PermissionDeniedError(
                "Unable to determine accessible databases. Your user may not have sufficient permissions.",
                context={"backend": self.backend.value, "operation": "list_databases"},
                cause=e,
            ) from e
        return [AUTH_DATABASE]

    async def list_tables(self, database: str) -> List[str]:
        session = self._require_session()
        db = session.handle[database]
        try:
            names = list(await db.list_collection_names())
        except Exception as e:
            if database != session.profile.database or not is_mongo_authorization_error(e):
                raise self._wrap(e, "list_tables", "Failed to list collections") from e
            self.logger.warning(
                "Not authorized to list collections, retrying with authorizedCollections",
                database=database,
            )
            names = await self._list_authorized_collections(db)
        self._active_database = database
        return names

    async def _list_authorized_collections(self, db: Any) -> List[str]:
        try:
            result = await db.command(
                {
                    "listCollections": 1,
                    "nameOnly": True,
                    "authorizedCollections": True,
                    "filter": {"type": "collection"},
                }
            )
        except Exception as e:
            raise PermissionDeniedError(
                "Unable to list collections. Your user may not have sufficient permissions.",
                context={"backend": self.backend.value, "operation": "list_tables"},
                cause=e,
            ) from e
        batch = result.get("cursor", {}).get("firstBatch", [])
        names = [entry["name"] for entry in batch if "name" in entry]

        # dbStats is advisory: it tells whether collections exist that we cannot see.
        try:
            stats = await db.command("dbStats")
            self.logger.info(
                "Collection listing restricted to authorized collections",
                visible=len(names),
                total=stats.get("collections"),
            )
        except Exception as e:
            self.logger.debug("dbStats unavailable", error=error_text(e))
        return names

    async def execute_query(self, query: str) -> QueryRows:
        """Run a ``{"collection", "find"}`` query and return plain documents.

        Decimal128 values come back as strings; ObjectIds as their hex form.
        """
        session = self._require_session()
        document = self._parse(query, "execute_query")
        criteria = document.get("find")
        if criteria is not None and not isinstance(criteria, dict):
            raise QueryError(
                "Find criteria incorrectly formatted. 'find' must be a JSON object.",
                code=ErrorCodes.INVALID_QUERY,
                context={"operation": "execute_query"},
            )
        collection = session.handle[self._database_name(document.get("database"))][document["collection"]]

        with self.perf_logger.measure("execute_query", backend=self.backend.value, collection=document["collection"]):
            try:
                cursor = collection.find(criteria or {})
                if not criteria:
                    cursor = cursor.limit(self.config.document_limit)
                cursor = cursor.max_time_ms(self.config.query_timeout_ms)
                documents = await cursor.to_list(None)
            except Exception as e:
                raise self._wrap(e, "execute_query", "Query execution failed") from e

        return [plain_row(row) for row in documents]

    async def execute_update(self, query: str) -> int:
        session = self._require_session()
        document = self._parse(query, "execute_update")
        update_filter = document.get("filter")
        update = document.get("update")
        if not isinstance(update_filter, dict) or not isinstance(update, dict):
            raise QueryError(
                "Update format incorrect. Please specify 'filter' and 'update' objects.",
                code=ErrorCodes.INVALID_QUERY,
                context={"operation": "execute_update"},
            )
        collection = session.handle[self._database_name(document.get("database"))][document["collection"]]

        with self.perf_logger.measure("execute_update", backend=self.backend.value, collection=document["collection"]):
            try:
                result = await collection.update_many(update_filter, update, upsert=True)
            except Exception as e:
                raise self._wrap(e, "execute_update", "Update execution failed") from e

        return result.modified_count + (1 if result.upserted_id is not None else 0)

    async def describe_table(self, name: str) -> TableStructure:
        session = self._require_session()
        collection = session.handle[self._database_name()][name]
        try:
            document = await collection.find_one()
        except Exception as e:
            raise self._wrap(e, "describe_table", "Failed to describe collection") from e
        if document is None:
            return {}
        return {str(field): type_name(value) for field, value in document.items()}
