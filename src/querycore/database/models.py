"""Data types shared by the database services.

Types:
    RowMap: One result row, column or field name to plain value
    QueryRows: Ordered list of rows returned by ``execute_query``
    TableStructure: Column or field name to type descriptor

Classes:
    ActiveSession: The single open backend handle owned by a service
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config.models import ConnectionProfile

RowMap = Dict[str, Any]
QueryRows = List[RowMap]
TableStructure = Dict[str, str]


@dataclass
class ActiveSession:
    """An open backend session.

    A service holds zero or one of these. The handle is the driver object
    (a PyMySQL connection or a pymongo client); the profile is the one
    used to open it.
    """

    handle: Any
    profile: ConnectionProfile
    tracking_id: Optional[str] = None
    server_version: Optional[str] = None
    opened_at: datetime = field(default_factory=datetime.now)
    # Backend specific extras, e.g. the auth tier that succeeded for MongoDB.
    extra: Dict[str, Any] = field(default_factory=dict)
