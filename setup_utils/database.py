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

from __future__ import annotations

"""Reset the starter's PostgreSQL roles and databases.

The reset runs against a superuser connection to a *different* database
(usually ``template1``).  Statements are issued one at a time on a single
autocommit connection because PostgreSQL refuses ``DROP DATABASE`` inside a
transaction block; a failure part way through leaves whatever already ran in
place and the error propagates to the caller.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.exc import SQLAlchemyError

from setup_utils.errors import DatabaseUnreachableError, SetupError

logger = logging.getLogger(__name__)

PROBE_SQL = 'select true as "Connection test"'
DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_RETRY_INTERVAL = 1.0

Statement = Tuple[str, Dict[str, str]]


class ReadinessState(Enum):
    """Readiness of the database server as seen by the provisioner."""

    UNKNOWN = "unknown"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisioningPlan:
    """Roles and databases derived from ``DATABASE_NAME``."""

    database_name: str
    owner: str
    owner_password: str
    authenticator: str
    authenticator_password: str
    visitor: str

    @property
    def databases(self) -> Tuple[str, str, str]:
        name = self.database_name
        return (name, f"{name}_shadow", f"{name}_test")

    @classmethod
    def from_config(cls, config) -> "ProvisioningPlan":
        name = config.get("DATABASE_NAME")
        if not name:
            raise SetupError("DATABASE_NAME is not configured")

        missing = [
            key
            for key in ("DATABASE_OWNER_PASSWORD", "DATABASE_AUTHENTICATOR_PASSWORD")
            if not config.get(key)
        ]
        if missing:
            raise SetupError(f"Missing configuration: {', '.join(missing)}")

        return cls(
            database_name=name,
            owner=config.get("DATABASE_OWNER") or name,
            owner_password=config.get("DATABASE_OWNER_PASSWORD"),
            authenticator=config.get("DATABASE_AUTHENTICATOR") or f"{name}_authenticator",
            authenticator_password=config.get("DATABASE_AUTHENTICATOR_PASSWORD"),
            visitor=config.get("DATABASE_VISITOR") or f"{name}_visitor",
        )

    def statements(self, quote: Callable[[str], str]) -> List[Statement]:
        """Return the reset statements in execution order.

        Databases go first, then the roles in reverse dependency order, so the
        owner role is only dropped once nothing it owns is left.
        """

        owner = quote(self.owner)
        authenticator = quote(self.authenticator)
        visitor = quote(self.visitor)

        statements: List[Statement] = [
            (f"DROP DATABASE IF EXISTS {quote(database)}", {}) for database in self.databases
        ]
        statements.extend(
            [
                (f"DROP ROLE IF EXISTS {visitor}", {}),
                (f"DROP ROLE IF EXISTS {authenticator}", {}),
                (f"DROP ROLE IF EXISTS {owner}", {}),
                # SUPERUSER is only needed to load the watch fixtures in development.
                (
                    f"CREATE ROLE {owner} WITH LOGIN PASSWORD :password SUPERUSER",
                    {"password": self.owner_password},
                ),
                (
                    f"CREATE ROLE {authenticator} WITH LOGIN PASSWORD :password NOINHERIT",
                    {"password": self.authenticator_password},
                ),
                (f"CREATE ROLE {visitor}", {}),
                (f"GRANT {visitor} TO {authenticator}", {}),
            ]
        )
        return statements


def normalise_database_url(raw_url: str) -> URL:
    """Return a SQLAlchemy URL for ``postgres://`` style connection strings."""

    url = make_url(raw_url)
    if url.drivername in {"postgres", "postgresql"}:
        url = url.set(drivername="postgresql+psycopg2")
    return url


def create_root_engine(raw_url: str) -> Engine:
    """Create an autocommit engine for the superuser connection string."""

    return create_engine(
        normalise_database_url(raw_url),
        isolation_level="AUTOCOMMIT",
        pool_pre_ping=True,
    )


class DatabaseProvisioner:
    """Wait for the database server and reset the starter's roles/databases."""

    def __init__(
        self,
        engine: Engine,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.engine = engine
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self.sleep = sleep
        self.state = ReadinessState.UNKNOWN

    def _probe(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text(PROBE_SQL))

    def wait_until_ready(self) -> int:
        """Probe until the server answers; return the number of attempts used."""

        for attempt in range(1, self.max_attempts + 1):
            try:
                self._probe()
            except SQLAlchemyError as exc:
                logger.warning("Database is not ready yet (attempt %d): %s", attempt, exc)
                if attempt < self.max_attempts:
                    self.sleep(self.retry_interval)
                continue

            self.state = ReadinessState.READY
            logger.debug("Database ready after %d attempt(s)", attempt)
            return attempt

        self.state = ReadinessState.FAILED
        logger.error("Database never came up, aborting")
        raise DatabaseUnreachableError(self.max_attempts)

    def _quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(name)

    def reset(self, plan: ProvisioningPlan) -> None:
        """Drop and recreate the roles and databases described by ``plan``."""

        if self.state is not ReadinessState.READY:
            raise SetupError("Refusing to reset the database before it is reachable")

        with self.engine.connect() as connection:
            for sql, params in plan.statements(self._quote):
                logger.debug("Executing: %s", sql)
                connection.execute(text(sql), params)

        logger.info(
            "Recreated roles %s, %s and %s",
            plan.owner,
            plan.authenticator,
            plan.visitor,
        )


def provision_database(
    plan: ProvisioningPlan,
    root_database_url: Optional[str],
    *,
    engine_factory: Callable[[str], Engine] = create_root_engine,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retry_interval: float = DEFAULT_RETRY_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Wait for the server, reset it, and always dispose of the engine."""

    if not root_database_url:
        raise SetupError("ROOT_DATABASE_URL is not configured")

    engine = engine_factory(root_database_url)
    try:
        provisioner = DatabaseProvisioner(
            engine,
            max_attempts=max_attempts,
            retry_interval=retry_interval,
            sleep=sleep,
        )
        provisioner.wait_until_ready()
        provisioner.reset(plan)
    finally:
        engine.dispose()


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_RETRY_INTERVAL",
    "DatabaseProvisioner",
    "PROBE_SQL",
    "ProvisioningPlan",
    "ReadinessState",
    "create_root_engine",
    "normalise_database_url",
    "provision_database",
]
