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

"""Exceptions raised while bootstrapping a starter project."""

from typing import Optional, Sequence


class SetupError(Exception):
    """Base exception for setup problems."""


class SetupAborted(SetupError):
    """Raised when the operator explicitly aborts the setup."""


class ConfigEncodingError(SetupError):
    """Raised when a value cannot be written to the .env file safely."""

    def __init__(self, message: str, key: Optional[str] = None):
        if key:
            message = f"{key}: {message}"
        super().__init__(message)
        self.key = key


class ConfirmationDeclinedError(SetupError):
    """Raised when the destructive database reset was not confirmed."""


class DatabaseUnreachableError(SetupError):
    """Raised when the database never answered the readiness probe."""

    def __init__(self, attempts: int):
        super().__init__(f"Database never came up after {attempts} attempts")
        self.attempts = attempts


class CommandFailedError(SetupError):
    """Raised when a delegated external command exits non-zero or is killed."""

    def __init__(
        self,
        args: Sequence[str],
        *,
        returncode: Optional[int] = None,
        signal: Optional[int] = None,
    ):
        command = " ".join(args)
        if signal is not None:
            message = f"Process exited due to signal '{signal}' (running '{command}')"
        else:
            message = f"Process exited with status '{returncode}' (running '{command}')"
        super().__init__(message)
        self.command = list(args)
        self.returncode = returncode
        self.signal = signal


__all__ = [
    "CommandFailedError",
    "ConfigEncodingError",
    "ConfirmationDeclinedError",
    "DatabaseUnreachableError",
    "SetupAborted",
    "SetupError",
]
