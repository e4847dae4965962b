"""Utility functions and helpers for QueryCore.

Classes:
    ValidationUtils: Input validation helpers
    FormatUtils: Formatting helpers for durations and rates
"""

import re
from typing import Optional


class ValidationUtils:
    """Input validation helpers used by configuration models."""

    _HOSTNAME_PATTERN = re.compile(
        r"^(?=.{1,253}$)([A-Za-z0-9_]([A-Za-z0-9_\-]{0,61}[A-Za-z0-9_])?)"
        r"(\.[A-Za-z0-9_]([A-Za-z0-9_\-]{0,61}[A-Za-z0-9_])?)*\.?$"
    )
    _IPV6_PATTERN = re.compile(r"^\[?[0-9A-Fa-f:.]+\]?$")

    @classmethod
    def validate_hostname(cls, value: str) -> bool:
        """Check that ``value`` is a hostname, IPv4 or IPv6 address.

        Args:
            value: Host to validate

        Returns:
            True if the host is syntactically valid
        """
        if not value:
            return False
        if cls._HOSTNAME_PATTERN.match(value):
            return True
        return ":" in value and bool(cls._IPV6_PATTERN.match(value))


class FormatUtils:
    """Formatting helpers for human-readable diagnostics output."""

    @staticmethod
    def format_duration_ms(duration_ms: Optional[float]) -> str:
        """Format a millisecond duration.

        Args:
            duration_ms: Duration in milliseconds

        Returns:
            ``"245ms"`` below one second, ``"2.45s"`` above, ``"-"`` if unknown
        """
        if duration_ms is None:
            return "-"
        if duration_ms < 1000:
            return f"{duration_ms:.0f}ms"
        return f"{duration_ms / 1000:.2f}s"

    @staticmethod
    def format_percentage(numerator: int, denominator: int) -> str:
        """Format a ratio as a percentage with one decimal place."""
        if denominator <= 0:
            return "0.0%"
        return f"{numerator / denominator * 100:.1f}%"
