"""Connection attempt telemetry.

The tracker records every connection attempt made by any service in the
process: when it started, how it ended and how long it took. History is a
bounded FIFO; the oldest attempt is evicted once capacity is exceeded.

Every public method runs under one lock, so services connecting from
different tasks or threads never interleave updates.

Example:
    >>> tracker = ConnectionTracker()
    >>> tracking_id = tracker.start_attempt(profile, "MySQL")
    >>> tracker.record_success(tracking_id, "MySQL 8.0.36")
    >>> print(tracker.summary())
"""

import itertools
import platform
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Union

from ..config.models import ConnectionProfile, TrackerConfig
from ..core.exceptions import ErrorKind
from ..core.utils import FormatUtils
from ..logging import get_logger

logger = get_logger(__name__)


class AttemptStatus(str, Enum):
    CONNECTING = "CONNECTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    DISCONNECTED = "DISCONNECTED"


def _device_info() -> str:
    return f"{platform.system()} {platform.release()} ({platform.machine()}), Python {platform.python_version()}"


@dataclass
class ConnectionAttempt:
    """A single tracked connection attempt. The password is never stored."""

    tracking_id: str
    backend: str
    host: str
    port: int
    database: str
    has_credentials: bool
    start_time: datetime = field(default_factory=datetime.now)
    status: AttemptStatus = AttemptStatus.CONNECTING
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    error_type: Optional[str] = None
    details: Optional[str] = None
    device_info: str = field(default_factory=_device_info)

    def finish(self, status: AttemptStatus) -> None:
        self.end_time = datetime.now()
        self.duration_ms = (self.end_time - self.start_time).total_seconds() * 1000
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "id": self.tracking_id,
            "type": self.backend,
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "has_credentials": self.has_credentials,
            "status": self.status.value,
            "start_time": self.start_time,
            "device_info": self.device_info,
        }
        if self.end_time is not None:
            entry["end_time"] = self.end_time
            entry["duration_ms"] = self.duration_ms
        if self.details is not None:
            entry["details"] = self.details
        if self.error_type is not None:
            entry["error_type"] = self.error_type
            entry["error_details"] = self.details
        return entry

    def render(self) -> str:
        line = (
            f"[{self.start_time:%Y-%m-%d %H:%M:%S}] {self.backend} - "
            f"{self.host}:{self.port} - {self.status.value}"
        )
        if self.duration_ms:
            line += f" ({FormatUtils.format_duration_ms(self.duration_ms)})"
        if self.error_type is not None:
            line += f" - Error: {self.error_type}"
        return line


class ConnectionTracker:
    """Process-wide record of connection attempts.

    Tracking ids have the form ``"<backend label>-<n>"`` where ``n`` increases
    monotonically across all backends. Recording an outcome for an id that is
    unknown (never issued, or already evicted) is silently ignored.
    """

    def __init__(self, config: Optional[TrackerConfig] = None) -> None:
        self._config = config or TrackerConfig()
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._history: Deque[ConnectionAttempt] = deque(maxlen=self._config.history_size)
        self._total = 0
        self._successful = 0
        self._failed = 0

    @property
    def capacity(self) -> int:
        return self._config.history_size

    def _find(self, tracking_id: str) -> Optional[ConnectionAttempt]:
        for attempt in self._history:
            if attempt.tracking_id == tracking_id:
                return attempt
        return None

    def start_attempt(self, profile: ConnectionProfile, backend_label: str) -> str:
        """Record the start of a connection attempt.

        Args:
            profile: Profile being connected; only non-secret fields are kept
            backend_label: Label such as ``"MySQL"`` or ``"MongoDB"``

        Returns:
            The tracking id for this attempt
        """
        with self._lock:
            self._total += 1
            tracking_id = f"{backend_label}-{next(self._sequence)}"
            self._history.append(
                ConnectionAttempt(
                    tracking_id=tracking_id,
                    backend=backend_label,
                    host=profile.host,
                    port=profile.port,
                    database=profile.database,
                    has_credentials=bool(profile.username),
                )
            )

        logger.info(
            "Connection attempt started",
            tracking_id=tracking_id,
            backend=backend_label,
            host=profile.host,
            port=profile.port,
        )
        return tracking_id

    def record_success(self, tracking_id: str, details: str = "") -> None:
        """Mark an attempt as successful, storing e.g. the server version."""
        with self._lock:
            attempt = self._find(tracking_id)
            if attempt is None or attempt.status is not AttemptStatus.CONNECTING:
                return
            self._successful += 1
            attempt.details = details
            attempt.finish(AttemptStatus.SUCCESS)
            duration_ms = attempt.duration_ms

        logger.info(
            "Connection attempt succeeded",
            tracking_id=tracking_id,
            duration_ms=duration_ms,
            details=details,
        )

    def record_failure(
        self,
        tracking_id: str,
        message: str,
        error_type: Union[ErrorKind, str] = ErrorKind.UNKNOWN,
    ) -> None:
        """Mark an attempt as failed with its classified error type."""
        kind = error_type.value if isinstance(error_type, ErrorKind) else str(error_type)
        with self._lock:
            attempt = self._find(tracking_id)
            if attempt is None or attempt.status is not AttemptStatus.CONNECTING:
                return
            self._failed += 1
            attempt.error_type = kind
            attempt.details = message
            attempt.finish(AttemptStatus.FAILED)
            duration_ms = attempt.duration_ms

        logger.warning(
            "Connection attempt failed",
            tracking_id=tracking_id,
            duration_ms=duration_ms,
            error_type=kind,
            error=message,
        )

    def record_disconnect(self, tracking_id: str) -> None:
        """Mark a successful attempt as disconnected.

        Attempts in any other state are left untouched.
        """
        with self._lock:
            attempt = self._find(tracking_id)
            if attempt is None or attempt.status is not AttemptStatus.SUCCESS:
                return
            attempt.status = AttemptStatus.DISCONNECTED
            connected_for = (datetime.now() - attempt.start_time).total_seconds() * 1000

        logger.info("Connection closed", tracking_id=tracking_id, connected_ms=connected_for)

    def get_status(self, tracking_id: str) -> Optional[AttemptStatus]:
        with self._lock:
            attempt = self._find(tracking_id)
            return attempt.status if attempt else None

    def stats(self) -> Dict[str, Any]:
        """Aggregate counters as a dictionary."""
        with self._lock:
            return {
                "total_attempts": self._total,
                "successful": self._successful,
                "failed": self._failed,
                "success_rate": FormatUtils.format_percentage(self._successful, self._total),
                "history_size": len(self._history),
                "capacity": self.capacity,
            }

    def summary(self) -> str:
        """Human-readable counters followed by history, most recent first."""
        with self._lock:
            lines = [
                "Connection Statistics:",
                f"- Total connection attempts: {self._total}",
                f"- Successful connections: {self._successful}",
                f"- Failed connections: {self._failed}",
            ]
            if self._successful > 0:
                lines.append(
                    f"- Success rate: {FormatUtils.format_percentage(self._successful, self._total)}"
                )
            lines.append("")
            lines.append("Recent Connection History (most recent first):")
            lines.extend(attempt.render() for attempt in reversed(self._history))
        return "\n".join(lines) + "\n"

    def detailed_history(self) -> List[Dict[str, Any]]:
        """Structured history, oldest first."""
        with self._lock:
            return [attempt.to_dict() for attempt in self._history]

    def reset(self) -> None:
        """Clear counters and history. Tracking ids keep increasing."""
        with self._lock:
            self._history.clear()
            self._total = 0
            self._successful = 0
            self._failed = 0


_default_tracker: Optional[ConnectionTracker] = None
_default_lock = threading.Lock()


def get_default_tracker(config: Optional[TrackerConfig] = None) -> ConnectionTracker:
    """Return the process tracker used by services that are not given one.

    ``config`` only applies when the tracker is created by this call.
    """
    global _default_tracker
    with _default_lock:
        if _default_tracker is None:
            _default_tracker = ConnectionTracker(config)
        return _default_tracker
