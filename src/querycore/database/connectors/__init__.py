"""Backend service implementations."""

from .mongodb import MongoDBService
from .mysql import MariaDBService, MySQLService

__all__ = ["MariaDBService", "MongoDBService", "MySQLService"]
