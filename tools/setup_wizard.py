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

"""Interactive CLI that configures .env and resets the starter's database.

Example usage::

    # Local setup, prompts for anything missing from .env
    python tools/setup_wizard.py

    # Docker setup; also records COMPOSE_PROJECT_NAME
    python tools/setup_wizard.py my_project

    # Unattended (same as exporting CONFIRM_DROP=1)
    python tools/setup_wizard.py --yes
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from setup_utils.commands import detect_node_major_version, run_yarn
from setup_utils.database import ProvisioningPlan, create_root_engine, provision_database
from setup_utils.errors import (
    ConfirmationDeclinedError,
    DatabaseUnreachableError,
    SetupAborted,
)
from setup_utils.setup_wizard import (
    ENV_OUTPUT_PATH,
    Prompt,
    PromptYesNo,
    SetupConfig,
    collect_answers,
    confirm_reset,
    load_setup_config,
    write_setup_env,
)

logger = logging.getLogger(__name__)


_YES_NO_ANSWERS = {"y": True, "yes": True, "n": False, "no": False}


def _read_answer(question: str) -> str:
    """Read one line from the operator; ``exit`` aborts the whole setup."""

    response = input(question).strip()
    if response.lower() == "exit":
        raise SetupAborted("Operator aborted the setup")
    return response


def _prompt(message: str, default: Optional[str] = None) -> str:
    question = f"{message} [{default}]: " if default else f"{message}: "
    response = _read_answer(question)
    while not (response or default):
        print("A value is required. Type 'exit' to cancel.")
        response = _read_answer(question)
    return response or default


def _prompt_yes_no(message: str, default: bool = True) -> bool:
    question = f"{message}\n[{'Y/n' if default else 'y/N'}]: "
    response = _read_answer(question).lower()
    while response and response not in _YES_NO_ANSWERS:
        print("Please answer with 'y' or 'n'.")
        response = _read_answer(question).lower()
    return _YES_NO_ANSWERS.get(response, default)


def _print_success(project_name: Optional[str]) -> None:
    rule = "_" * 60
    print("\n")
    print(rule)
    print("\n")
    print("Setup success")
    print()
    print("To get started, run:")
    print()
    if project_name:
        # Probably a Docker setup
        print("  export UID; docker-compose up server")
    else:
        print("  yarn start")
    print()
    print("Please support our Open Source work: https://graphile.org/sponsor")
    print()
    print(rule)
    print()


def run_setup(
    config: SetupConfig,
    *,
    environ: Optional[Mapping[str, str]] = None,
    prompt: Prompt = _prompt,
    prompt_yes_no: PromptYesNo = _prompt_yes_no,
    run: Callable[..., object] = run_yarn,
    engine_factory=create_root_engine,
    sleep: Callable[[float], None] = time.sleep,
    node_major_version: Optional[int] = None,
) -> SetupConfig:
    """Run the whole setup sequence and return the final configuration."""

    answers = collect_answers(config.values, prompt)
    write_setup_env(config, answers, node_major_version=node_major_version)

    # Build output is only shown when the build fails.
    run("server", "build", env=config.with_answers(answers).values, capture_output=True)

    config = config.reload(environ)
    plan = ProvisioningPlan.from_config(config)
    confirm_reset(plan, config, prompt_yes_no)

    print("Installing or reinstalling the roles and database...")
    provision_database(
        plan,
        config.get("ROOT_DATABASE_URL"),
        engine_factory=engine_factory,
        sleep=sleep,
    )

    run("db", "reset", env=config.values)
    run("db", "reset", "--shadow", env=config.values)

    _print_success(config.project_name)
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Configure .env and reset the starter's PostgreSQL roles and databases"
    )
    parser.add_argument(
        "project_name",
        nargs="?",
        help="Folder name of the cloned project; records COMPOSE_PROJECT_NAME for docker-compose.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=ENV_OUTPUT_PATH,
        help=f"Environment file to create or update (default: {ENV_OUTPUT_PATH}).",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Drop and recreate the database without asking (same as CONFIRM_DROP=1).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_setup_config(
            args.env_file,
            environ=os.environ,
            project_name=args.project_name,
            assume_yes=args.yes,
        )
        run_setup(
            config,
            environ=os.environ,
            node_major_version=detect_node_major_version(),
        )
    except SetupAborted:
        print("Setup cancelled.")
        return 1
    except ConfirmationDeclinedError as exc:
        print(exc, file=sys.stderr)
        return 1
    except DatabaseUnreachableError as exc:
        print(f"{exc} :(", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"Setup failed: {exc!r}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
