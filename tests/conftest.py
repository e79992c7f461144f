"""
EAS Station - Emergency Alert System
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of EAS Station.

EAS Station is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

You should have received a copy of both licenses with this software.
For more information, see LICENSE and LICENSE-COMMERCIAL files.

IMPORTANT: This software cannot be rebranded or have attribution removed.
See NOTICE file for complete terms.

Repository: https://github.com/KR8MER/eas-station
"""

"""Pytest configuration and shared fixtures for the setup tests.

This module provides temporary env files and an in-memory stand-in for a
SQLAlchemy engine so the provisioning flow can run without PostgreSQL.
"""
import sys
import tempfile
from pathlib import Path
from typing import Generator, List, Tuple

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# ============================================================================
# Fake database engine
# ============================================================================

class FakeConnection:
    """Records every statement executed through it."""

    def __init__(self, engine: "FakeEngine"):
        self.engine = engine

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, clause, params=None):
        sql = str(clause)
        if sql == self.engine.probe_sql:
            self.engine.probes += 1
            return None
        if sql in self.engine.fail_on:
            raise OperationalError(sql, params, Exception("statement failed"))
        self.engine.executed.append((sql, dict(params or {})))
        return None


class FakeEngine:
    """Minimal engine: ``failures`` connection attempts are refused first."""

    def __init__(self, failures: int = 0, fail_on=()):
        from setup_utils.database import PROBE_SQL

        self.dialect = postgresql.dialect()
        self.probe_sql = PROBE_SQL
        self.failures_remaining = failures
        self.fail_on = set(fail_on)
        self.connect_attempts = 0
        self.probes = 0
        self.executed: List[Tuple[str, dict]] = []
        self.disposed = False

    def connect(self) -> FakeConnection:
        self.connect_attempts += 1
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise OperationalError("connect", {}, Exception("connection refused"))
        return FakeConnection(self)

    def dispose(self) -> None:
        self.disposed = True

    @property
    def statements(self) -> List[str]:
        return [sql for sql, _ in self.executed]


# ============================================================================
# Function-level fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test use.

    The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def env_path(temp_dir: Path) -> Path:
    """Return the path of a not-yet-existing .env file."""
    return temp_dir / ".env"


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_engine():
    """Return the fake engine class for tests that need custom failures."""
    return FakeEngine


@pytest.fixture
def sleeps() -> List[float]:
    """Collects the delays requested by the readiness loop."""
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def provisioned_config() -> dict:
    """Configuration values as they look after the .env file was written."""
    return {
        "ROOT_DATABASE_URL": "postgres:///template1",
        "DATABASE_NAME": "demo",
        "DATABASE_OWNER": "demo",
        "DATABASE_OWNER_PASSWORD": "owner-secret",
        "DATABASE_AUTHENTICATOR": "demo_authenticator",
        "DATABASE_AUTHENTICATOR_PASSWORD": "auth-secret",
        "DATABASE_VISITOR": "demo_visitor",
    }


# ============================================================================
# Test markers and utilities
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "functional: Functional tests (complete workflows)"
    )


def pytest_collection_modifyitems(config, items):
    """Add the 'unit' marker to tests without any marker."""
    for item in items:
        if not any(item.iter_markers()):
            item.add_marker(pytest.mark.unit)
