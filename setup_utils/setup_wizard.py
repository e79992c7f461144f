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

"""Questions, defaults and confirmation for the starter setup.

This module owns the list of variables written to ``.env``, the handful of
questions asked when a value is missing, and the configuration object that is
handed from the prompt phase to the provisioning phase.  The CLI in
``tools/setup_wizard.py`` supplies the actual prompt functions so the whole
flow can be driven from tests.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Union
import logging
import os
import re

from setup_utils.env_file import EnvEntry, read_env_values, safe_random_string, update_env_file
from setup_utils.errors import ConfirmationDeclinedError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Use SETUP_ENV_PATH if set, otherwise write next to the project
_env_path_override = os.environ.get("SETUP_ENV_PATH")
if _env_path_override:
    ENV_OUTPUT_PATH = Path(_env_path_override)
else:
    ENV_OUTPUT_PATH = PROJECT_ROOT / ".env"

DEFAULT_DATABASE_NAME = "graphile_starter"
DEFAULT_DATABASE_HOST = "localhost"
DEFAULT_PORT = "5678"
SECRET_LENGTH = 30
JWT_SECRET_LENGTH = 48
TURBO_MIN_NODE_VERSION = 12

_DATABASE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]+$")

Prompt = Callable[[str, Optional[str]], str]
PromptYesNo = Callable[[str, bool], bool]
Resolvable = Union[str, Callable[[Mapping[str, str]], str]]


@dataclass
class SetupConfig:
    """Configuration for a single setup run.

    ``values`` holds the env file contents overlaid by the process
    environment, so variables docker-compose already passes in (``CONFIRM_DROP``,
    ``PG_DUMP``) are visible without touching ``os.environ``.
    """

    env_path: Path
    values: Dict[str, str] = field(default_factory=dict)
    project_name: Optional[str] = None
    assume_yes: bool = False

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    @property
    def confirm_drop(self) -> bool:
        return self.assume_yes or bool(self.values.get("CONFIRM_DROP"))

    def with_answers(self, answers: Mapping[str, str]) -> "SetupConfig":
        merged = dict(self.values)
        merged.update(answers)
        return replace(self, values=merged)

    def reload(self, environ: Optional[Mapping[str, str]] = None) -> "SetupConfig":
        """Re-read the env file; the environment still takes precedence."""

        return load_setup_config(
            self.env_path,
            environ=environ,
            project_name=self.project_name,
            assume_yes=self.assume_yes,
        )


def load_setup_config(
    env_path: Path = ENV_OUTPUT_PATH,
    *,
    environ: Optional[Mapping[str, str]] = None,
    project_name: Optional[str] = None,
    assume_yes: bool = False,
) -> SetupConfig:
    values = read_env_values(env_path)
    values.update(os.environ if environ is None else environ)
    return SetupConfig(
        env_path=env_path,
        values=values,
        project_name=project_name,
        assume_yes=assume_yes,
    )


def _resolve(value: Resolvable, answers: Mapping[str, str]) -> str:
    return value(answers) if callable(value) else value


def _validate_database_name(value: str) -> str:
    if not _DATABASE_NAME_PATTERN.match(value):
        raise ValueError(
            "That doesn't look like a good name for a database, try something simpler - "
            "just lowercase alphanumeric and underscores"
        )
    return value


def _default_root_database_url(answers: Mapping[str, str]) -> str:
    host = answers.get("DATABASE_HOST", DEFAULT_DATABASE_HOST)
    if host == "localhost":
        host = ""
    return f"postgres://{host}/template1"


def _root_database_url_message(answers: Mapping[str, str]) -> str:
    name = answers.get("DATABASE_NAME", DEFAULT_DATABASE_NAME)
    return (
        "Please enter a superuser connection string to the database server "
        f"(so we can drop/create the '{name}' and '{name}_shadow' databases) - "
        f"IMPORTANT: it must not be a connection to the '{name}' database itself, "
        "instead try 'template1'."
    )


@dataclass(frozen=True)
class SetupQuestion:
    """A value the operator is asked for when it is not configured yet."""

    key: str
    message: Resolvable
    default: Resolvable
    validator: Optional[Callable[[str], str]] = None
    # Empty values count as answered when False.
    ask_when_empty: bool = True

    def is_answered(self, values: Mapping[str, str]) -> bool:
        if self.key not in values:
            return False
        return bool(values[self.key]) or not self.ask_when_empty

    def clean(self, value: str) -> str:
        trimmed = value.strip()
        if self.validator is not None:
            trimmed = self.validator(trimmed)
        return trimmed


SETUP_QUESTIONS: List[SetupQuestion] = [
    SetupQuestion(
        key="DATABASE_NAME",
        message="What would you like to call your database?",
        default=DEFAULT_DATABASE_NAME,
        validator=_validate_database_name,
    ),
    SetupQuestion(
        key="DATABASE_HOST",
        message=(
            "What's the hostname of your database server "
            "(include :port if it's not the default :5432)?"
        ),
        default=DEFAULT_DATABASE_HOST,
        ask_when_empty=False,
    ),
    SetupQuestion(
        key="ROOT_DATABASE_URL",
        message=_root_database_url_message,
        default=_default_root_database_url,
    ),
]


def collect_answers(values: Mapping[str, str], prompt: Prompt) -> Dict[str, str]:
    """Ask every unanswered question, re-asking until the answer validates."""

    answers: Dict[str, str] = {}
    for question in SETUP_QUESTIONS:
        if question.is_answered(values):
            continue

        context = dict(values)
        context.update(answers)
        message = _resolve(question.message, context)
        default = _resolve(question.default, context)

        while True:
            raw = prompt(message, default)
            try:
                answers[question.key] = question.clean(raw)
            except ValueError as exc:
                print(exc)
                continue
            break

    return answers


def build_env_entries(
    answers: Mapping[str, str],
    *,
    project_name: Optional[str] = None,
    turbo_enabled: bool = False,
) -> List[EnvEntry]:
    """Return every managed variable in the order it is written to ``.env``."""

    database_name = answers.get("DATABASE_NAME", "")

    entries = [
        EnvEntry(
            "GRAPHILE_LICENSE",
            comment=(
                "# If you're supporting PostGraphile's development via Patreon or Graphile\n"
                "# Store, add your license key from https://store.graphile.com here so you can\n"
                "# use the Pro plugin - thanks so much!"
            ),
        ),
        EnvEntry(
            "NODE_ENV",
            "development",
            "# This is a development environment (production wouldn't write envvars to a file)",
        ),
        EnvEntry(
            "ROOT_DATABASE_URL",
            comment=(
                "# Superuser connection string (to a _different_ database), so databases can "
                "be dropped/created (may not be necessary in production)"
            ),
        ),
        EnvEntry("DATABASE_HOST", comment="# Where's the DB, and who owns it?"),
        EnvEntry("DATABASE_NAME"),
        EnvEntry("DATABASE_OWNER", database_name),
        EnvEntry("DATABASE_OWNER_PASSWORD", safe_random_string(SECRET_LENGTH)),
        EnvEntry(
            "DATABASE_AUTHENTICATOR",
            f"{database_name}_authenticator",
            "# The PostGraphile database user, which has very limited\n"
            "# privileges, but can switch into the DATABASE_VISITOR role",
        ),
        EnvEntry("DATABASE_AUTHENTICATOR_PASSWORD", safe_random_string(SECRET_LENGTH)),
        EnvEntry(
            "DATABASE_VISITOR",
            f"{database_name}_visitor",
            "# Visitor role, cannot be logged into directly",
        ),
        EnvEntry(
            "SECRET",
            safe_random_string(SECRET_LENGTH),
            "# This secret is used for signing cookies",
        ),
        EnvEntry(
            "JWT_SECRET",
            safe_random_string(JWT_SECRET_LENGTH),
            "# This secret is used for signing JWT tokens (we don't use this by default)",
        ),
        EnvEntry("PORT", DEFAULT_PORT, "# This port is the one you'll connect to"),
        EnvEntry(
            "ROOT_URL",
            f"http://localhost:{DEFAULT_PORT}",
            "# This is needed any time we use absolute URLs, e.g. for OAuth callback URLs\n"
            "# IMPORTANT: must NOT end with a slash",
        ),
        EnvEntry(
            "GITHUB_KEY",
            comment=(
                "# To enable login with GitHub, create a GitHub application by visiting\n"
                "# https://github.com/settings/applications/new and then enter the Client\n"
                "# ID/Secret below\n"
                "#\n"
                "#   Name: PostGraphile Starter (Dev)\n"
                f"#   Homepage URL: http://localhost:{DEFAULT_PORT}\n"
                f"#   Authorization callback URL: http://localhost:{DEFAULT_PORT}/auth/github/callback\n"
                "#\n"
                "# Client ID:"
            ),
        ),
        EnvEntry("GITHUB_SECRET", comment="# Client Secret:"),
        EnvEntry(
            "GRAPHILE_TURBO",
            "1" if turbo_enabled else "",
            f"# Set to 1 only if you're on Node v{TURBO_MIN_NODE_VERSION} or higher; "
            "enables advanced optimisations:",
        ),
    ]

    if project_name:
        entries.append(
            EnvEntry(
                "COMPOSE_PROJECT_NAME",
                project_name,
                "# The name of the folder you cloned the starter to "
                "(so we can run docker-compose inside a container):",
            )
        )

    return entries


def write_setup_env(
    config: SetupConfig,
    answers: Mapping[str, str],
    *,
    node_major_version: Optional[int] = None,
) -> Path:
    """Merge ``answers`` over ``config`` and persist them to the env file."""

    merged = dict(config.values)
    merged.update(answers)
    turbo_enabled = node_major_version is not None and node_major_version >= TURBO_MIN_NODE_VERSION
    entries = build_env_entries(
        merged,
        project_name=config.project_name,
        turbo_enabled=turbo_enabled,
    )
    destination = update_env_file(config.env_path, entries, merged)
    logger.info("Configuration written to %s", destination)
    return destination


def describe_reset(plan) -> str:
    lines = ["We're going to drop (if necessary):", ""]
    for database in plan.databases:
        lines.append(f"  - database {database}")
    lines.append(f"  - database role {plan.visitor} (cascade)")
    lines.append(f"  - database role {plan.authenticator} (cascade)")
    lines.append(f"  - database role {plan.owner}")
    return "\n".join(lines)


def confirm_reset(plan, config: SetupConfig, prompt_yes_no: PromptYesNo) -> None:
    """Raise :class:`ConfirmationDeclinedError` unless the reset is approved."""

    if config.confirm_drop:
        logger.info("Database reset pre-confirmed; skipping the confirmation prompt")
        return

    if not prompt_yes_no(describe_reset(plan), False):
        raise ConfirmationDeclinedError("Confirmation failed; exiting")


__all__ = [
    "DEFAULT_DATABASE_HOST",
    "DEFAULT_DATABASE_NAME",
    "ENV_OUTPUT_PATH",
    "PROJECT_ROOT",
    "SETUP_QUESTIONS",
    "SetupConfig",
    "SetupQuestion",
    "build_env_entries",
    "collect_answers",
    "confirm_reset",
    "describe_reset",
    "load_setup_config",
    "write_setup_env",
]
