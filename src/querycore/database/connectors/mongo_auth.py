"""MongoDB credential construction.

Credentials are built by an ordered list of strategies. Each strategy is a
pure function ``(username, password, auth_db) -> MongoCredential`` that
raises when the mechanism cannot be prepared locally (missing hash support,
a password the mechanism cannot encode, ...). The first strategy that
succeeds wins; nothing here touches the network.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from pymongo.saslprep import saslprep

from ...config.models import ConnectionProfile, TimeoutPolicy
from ...core.exceptions import ConfigurationError, ErrorCodes
from ...logging import get_logger

logger = get_logger(__name__)

AUTH_DATABASE = "admin"

# MONGODB-CR was removed in MongoDB 4.0 and pymongo 4; SCRAM-SHA-1 is the
# oldest mechanism the driver still negotiates.
LEGACY_AUTH_MECHANISM = "SCRAM-SHA-1"


@dataclass(frozen=True)
class MongoCredential:
    """Username, password, auth source and (optional) explicit mechanism."""

    username: str
    password: str = field(repr=False)
    source: str = AUTH_DATABASE
    mechanism: Optional[str] = None

    def client_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``AsyncMongoClient``."""
        options: Dict[str, Any] = {
            "username": self.username,
            "password": self.password,
            "authSource": self.source,
        }
        if self.mechanism is not None:
            options["authMechanism"] = self.mechanism
        return options


CredentialStrategy = Callable[[str, str, str], MongoCredential]


def _require_username(username: str) -> None:
    if not username:
        raise ValueError("username is required")


def scram_sha_256(username: str, password: str, auth_db: str) -> MongoCredential:
    """SCRAM-SHA-256, the preferred mechanism.

    Needs SHA-256 and SASLprep (``stringprep``) support, and a password that
    SASLprep accepts.
    """
    _require_username(username)
    hashlib.new("sha256")
    saslprep(password)
    return MongoCredential(username, password, auth_db, "SCRAM-SHA-256")


def scram_sha_1(username: str, password: str, auth_db: str) -> MongoCredential:
    """SCRAM-SHA-1, for servers or builds without SHA-256 support."""
    _require_username(username)
    hashlib.new("sha1")
    return MongoCredential(username, password, auth_db, "SCRAM-SHA-1")


def driver_default(username: str, password: str, auth_db: str) -> MongoCredential:
    """No explicit mechanism; the driver negotiates with the server."""
    _require_username(username)
    return MongoCredential(username, password, auth_db)


CREDENTIAL_STRATEGIES: Tuple[CredentialStrategy, ...] = (scram_sha_256, scram_sha_1, driver_default)


def _name(strategy: CredentialStrategy) -> str:
    return getattr(strategy, "__name__", repr(strategy))


def build_credential(
    username: Optional[str],
    password: Optional[str],
    auth_db: str = AUTH_DATABASE,
    strategies: Sequence[CredentialStrategy] = CREDENTIAL_STRATEGIES,
) -> Optional[MongoCredential]:
    """Build a credential with the first strategy that succeeds.

    Returns ``None`` for anonymous access (no username or no password).

    Raises:
        ConfigurationError: If every strategy fails
    """
    if not username or not password:
        return None

    last_error: Optional[Exception] = None
    for strategy in strategies:
        try:
            credential = strategy(username, password, auth_db)
        except Exception as e:
            logger.debug("Credential strategy unavailable", strategy=_name(strategy), error=str(e))
            last_error = e
            continue
        logger.debug("Credential built", strategy=_name(strategy), mechanism=credential.mechanism)
        return credential

    raise ConfigurationError(
        f"Unable to build MongoDB credentials: {last_error}",
        code=ErrorCodes.CONFIG_INVALID,
        context={"username": username, "auth_db": auth_db},
        cause=last_error,
    )


def _host_part(host: str) -> str:
    if ":" in host and not host.startswith("["):
        return f"[{host}]"
    return host


def build_legacy_uri(profile: ConnectionProfile, timeouts: Optional[TimeoutPolicy] = None) -> str:
    """Connection string that forces the legacy auth mechanism.

    User name and password are percent-encoded, so reserved characters
    (``@ : / ? # %``) survive. Anonymous profiles get no credentials and no
    mechanism.
    """
    timeouts = timeouts or TimeoutPolicy()
    auth = ""
    params: Dict[str, Any] = {
        "authSource": AUTH_DATABASE,
        "connectTimeoutMS": timeouts.connect_timeout_ms,
        "socketTimeoutMS": timeouts.socket_timeout_ms,
    }
    if profile.has_credentials:
        auth = f"{quote(profile.username or '', safe='')}:{quote(profile.password_value, safe='')}@"
        params["authMechanism"] = LEGACY_AUTH_MECHANISM
    return f"mongodb://{auth}{_host_part(profile.host)}:{profile.port}/{AUTH_DATABASE}?{urlencode(params)}"
