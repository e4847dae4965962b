"""Database service factory.

Maps a profile's declared backend type to the service class that handles
it. The built-in backends are registered on construction; additional ones
can be registered at runtime.
"""

from typing import Dict, List, Optional, Type, Union

from ..config.models import BackendType, ConnectionProfile, TimeoutPolicy
from ..core.exceptions import ConfigurationError, ErrorCodes
from ..logging import get_logger
from .base import DatabaseService
from .connectors import MariaDBService, MongoDBService, MySQLService
from .tracker import ConnectionTracker


class DatabaseServiceFactory:
    """Factory for creating database services by backend type.

    Example:
        >>> factory = DatabaseServiceFactory()
        >>> service = factory.create(profile, tracker=tracker)
        >>> await service.connect(profile)
    """

    def __init__(self) -> None:
        self.logger = get_logger("querycore.database.factory")
        self._services: Dict[BackendType, Type[DatabaseService]] = {
            BackendType.MYSQL: MySQLService,
            BackendType.MARIADB: MariaDBService,
            BackendType.MONGODB: MongoDBService,
        }

    def register(self, backend: BackendType, service_class: Type[DatabaseService]) -> None:
        """Register or replace the service class for ``backend``.

        Raises:
            ConfigurationError: If ``service_class`` is not a DatabaseService
        """
        if not (isinstance(service_class, type) and issubclass(service_class, DatabaseService)):
            raise ConfigurationError(
                f"{service_class!r} must subclass DatabaseService",
                code=ErrorCodes.CONFIG_INVALID,
                context={"backend": backend.value},
            )
        if backend in self._services:
            self.logger.warning(
                "Overriding existing service registration",
                backend=backend.value,
                existing_class=self._services[backend].__name__,
                new_class=service_class.__name__,
            )
        self._services[backend] = service_class

    def get_service_class(self, backend: Union[BackendType, str]) -> Type[DatabaseService]:
        """Service class for ``backend``.

        Raises:
            ConfigurationError: BACKEND_NOT_SUPPORTED for unknown backends
        """
        try:
            key = BackendType(backend)
            return self._services[key]
        except (ValueError, KeyError):
            raise ConfigurationError(
                f"Unsupported database backend: {getattr(backend, 'value', backend)}",
                code=ErrorCodes.BACKEND_NOT_SUPPORTED,
                context={"backend": str(getattr(backend, "value", backend)), "supported": self.supported_backends()},
            ) from None

    def create(
        self,
        target: Union[ConnectionProfile, BackendType, str],
        *,
        timeouts: Optional[TimeoutPolicy] = None,
        tracker: Optional[ConnectionTracker] = None,
    ) -> DatabaseService:
        """Create an unconnected service for a profile or backend type."""
        backend = target.backend if isinstance(target, ConnectionProfile) else target
        service_class = self.get_service_class(backend)
        service = service_class(timeouts, tracker=tracker)
        self.logger.debug("Database service created", backend=service.backend.value, service=service_class.__name__)
        return service

    def supported_backends(self) -> List[str]:
        return [backend.value for backend in self._services]

    def is_supported(self, backend: Union[BackendType, str]) -> bool:
        try:
            return BackendType(backend) in self._services
        except ValueError:
            return False


def create_service(
    target: Union[ConnectionProfile, BackendType, str],
    *,
    timeouts: Optional[TimeoutPolicy] = None,
    tracker: Optional[ConnectionTracker] = None,
) -> DatabaseService:
    """Create a service using a default factory."""
    return DatabaseServiceFactory().create(target, timeouts=timeouts, tracker=tracker)
