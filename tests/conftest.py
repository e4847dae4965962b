"""Pytest configuration and shared fixtures.

This module provides pytest configuration and shared fixtures for all tests
in the QueryCore test suite.
"""

import logging
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import structlog

from querycore.config.models import BackendType, ConnectionProfile
from querycore.database.tracker import ConnectionTracker


def configure_test_structlog() -> None:
    """Route structlog through the testing logger to suppress noise."""
    structlog.configure(
        processors=[structlog.testing.LogCapture()],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        logger_factory=structlog.testing.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


configure_test_structlog()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def tracker() -> ConnectionTracker:
    """Fresh tracker so tests never share history."""
    return ConnectionTracker()


@pytest.fixture
def mysql_profile() -> ConnectionProfile:
    return ConnectionProfile(
        name="shop",
        backend=BackendType.MYSQL,
        host="db.example",
        port=3306,
        database="shop",
        username="root",
        password="x",
    )


@pytest.fixture
def mongo_profile() -> ConnectionProfile:
    return ConnectionProfile(
        name="catalog",
        backend=BackendType.MONGODB,
        host="mongo.example",
        port=27017,
        database="catalog",
        username="app",
        password="s3cret",
    )


@pytest.fixture
def anonymous_mongo_profile() -> ConnectionProfile:
    return ConnectionProfile(
        name="local",
        backend=BackendType.MONGODB,
        host="mongo.example",
        port=27017,
        database="catalog",
        username="",
        password="",
    )


@pytest.fixture
def sample_settings_data() -> dict:
    """Sample settings data for testing."""
    return {
        "timeouts": {
            "connect_timeout": 10,
            "socket_timeout": 15,
            "query_timeout": 5,
        },
        "tracker": {"history_size": 5},
        "logging": {
            "level": "DEBUG",
            "format": "text",
            "console_output": False,
        },
    }


@pytest.fixture
def settings_file(temp_dir: Path, sample_settings_data: dict) -> Path:
    """Create temporary settings file."""
    import yaml

    config_path = temp_dir / "querycore.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_settings_data, f)
    return config_path


# Auto-mark tests based on their location
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(config.rootdir) / "tests")

        if test_path.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)
        elif test_path.parts[0] == "integration":
            item.add_marker(pytest.mark.integration)

        if "database" in test_path.parts or "connectors" in test_path.parts:
            item.add_marker(pytest.mark.database)

        if "network" in str(test_path) or "diagnostics" in str(test_path):
            item.add_marker(pytest.mark.network)

        if not any(mark.name == "slow" for mark in item.iter_markers()):
            if any(mark.name == "integration" for mark in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
