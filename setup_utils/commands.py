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

"""Helpers for shelling out to the project's package-script runner."""

import logging
import os
import re
import shutil
import subprocess
import sys
from typing import Dict, Mapping, Optional, Sequence

from setup_utils.errors import CommandFailedError

logger = logging.getLogger(__name__)

QUIET_ENVIRONMENT: Dict[str, str] = {
    "YARN_SILENT": "1",
    "npm_config_loglevel": "silent",
}


def yarn_command() -> str:
    """Return the yarn executable name for the current platform."""

    # Windows only resolves the .cmd shim when it is named explicitly.
    return "yarn.cmd" if sys.platform == "win32" else "yarn"


def _decode(output) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_command(
    args: Sequence[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    capture_output: bool = False,
) -> subprocess.CompletedProcess:
    """Run ``args`` and raise :class:`CommandFailedError` unless it succeeds.

    Standard output and error are inherited from this process unless
    ``capture_output`` is set, in which case they are only printed when the
    command fails.  ``OSError`` (for example a missing executable) propagates
    unchanged.
    """

    command = list(args)
    child_env = dict(os.environ if env is None else env)
    child_env.update(QUIET_ENVIRONMENT)

    logger.debug("Running %s", " ".join(command))
    completed = subprocess.run(
        command,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE if capture_output else None,
        stderr=subprocess.PIPE if capture_output else None,
        env=child_env,
        check=False,
    )

    if completed.returncode == 0:
        return completed

    if completed.stdout:
        print(_decode(completed.stdout))
    if completed.stderr:
        print(_decode(completed.stderr), file=sys.stderr)

    if completed.returncode < 0:
        raise CommandFailedError(command, signal=-completed.returncode)
    raise CommandFailedError(command, returncode=completed.returncode)


def run_yarn(
    *args: str,
    env: Optional[Mapping[str, str]] = None,
    capture_output: bool = False,
) -> subprocess.CompletedProcess:
    return run_command([yarn_command(), *args], env=env, capture_output=capture_output)


def detect_node_major_version() -> Optional[int]:
    """Return the major version of the ``node`` on PATH, if there is one."""

    node = shutil.which("node")
    if node is None:
        return None
    try:
        completed = subprocess.run(
            [node, "--version"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        logger.debug("Could not run %s --version: %s", node, exc)
        return None

    match = re.match(r"v?(\d+)", completed.stdout.strip())
    if completed.returncode != 0 or match is None:
        return None
    return int(match.group(1))


__all__ = [
    "QUIET_ENVIRONMENT",
    "detect_node_major_version",
    "run_command",
    "run_yarn",
    "yarn_command",
]
