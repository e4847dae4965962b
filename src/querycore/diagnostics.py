"""Connection diagnostics for support screens.

Basic reachability probing (DNS resolution plus a TCP connect) and a
plain-text report combining the probes with the connection tracker's
history.

Example:
    >>> probes = [await probe_reachability("db.example", 3306)]
    >>> print(build_diagnostics_report(get_default_tracker(), probes))
"""

import asyncio
import platform
import socket
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .core.utils import FormatUtils
from .database.tracker import ConnectionTracker
from .logging import get_logger

logger = get_logger(__name__)

REPORT_HEADER = "=== CONNECTION DIAGNOSTICS REPORT ==="


@dataclass(frozen=True)
class ReachabilityResult:
    """Outcome of one reachability probe."""

    host: str
    port: int
    resolved_address: Optional[str] = None
    reachable: bool = False
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    def render(self) -> str:
        line = f"- Testing connectivity to {self.host}:{self.port}: "
        if self.resolved_address is None:
            return line + f"Failed - {self.error}"
        line += f"Resolved to {self.resolved_address}, "
        if self.reachable:
            return line + f"reachable ({FormatUtils.format_duration_ms(self.latency_ms)})"
        return line + f"not reachable ({self.error})"


async def probe_reachability(host: str, port: int, timeout: float = 5.0) -> ReachabilityResult:
    """Resolve ``host`` and open (then close) a TCP connection to ``port``.

    Never raises: every failure is reported in the result.
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await asyncio.wait_for(
            loop.getaddrinfo(host, port, type=socket.SOCK_STREAM), timeout=timeout
        )
        address = infos[0][4][0]
    except Exception as e:
        logger.debug("Name resolution failed", host=host, error=str(e))
        return ReachabilityResult(host, port, error=str(e) or type(e).__name__)

    started = time.perf_counter()
    try:
        _reader, writer = await asyncio.wait_for(asyncio.open_connection(address, port), timeout=timeout)
    except Exception as e:
        logger.debug("TCP connect failed", host=host, port=port, error=str(e))
        return ReachabilityResult(host, port, address, error=str(e) or type(e).__name__)

    latency_ms = (time.perf_counter() - started) * 1000
    writer.close()
    try:
        await writer.wait_closed()
    except Exception as e:
        logger.debug("Error closing probe connection", error=str(e))
    return ReachabilityResult(host, port, address, reachable=True, latency_ms=latency_ms)


def build_diagnostics_report(
    tracker: ConnectionTracker,
    probes: Iterable[ReachabilityResult] = (),
) -> str:
    """Plain-text report: platform, tracker summary and probe results."""
    lines = [
        REPORT_HEADER,
        "",
        f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}",
        "",
        "Platform Information:",
        f"- System: {platform.system()} {platform.release()}",
        f"- Machine: {platform.machine()}",
        f"- Python: {platform.python_implementation()} {platform.python_version()}",
        f"- Host name: {platform.node()}",
        "",
        tracker.summary().rstrip("\n"),
        "",
        "Network Tests:",
    ]
    probe_lines = [probe.render() for probe in probes]
    lines.extend(probe_lines or ["- No probes run"])
    return "\n".join(lines) + "\n"
