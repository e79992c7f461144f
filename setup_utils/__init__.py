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

"""Helpers for bootstrapping the starter's .env file and database."""

from .errors import (
    CommandFailedError,
    ConfigEncodingError,
    ConfirmationDeclinedError,
    DatabaseUnreachableError,
    SetupAborted,
    SetupError,
)
from .env_file import EnvDocument, EnvEntry, encode_value, safe_random_string, update_env_file
from .database import DatabaseProvisioner, ProvisioningPlan, provision_database
from .setup_wizard import SetupConfig, load_setup_config

__all__ = [
    "CommandFailedError",
    "ConfigEncodingError",
    "ConfirmationDeclinedError",
    "DatabaseProvisioner",
    "DatabaseUnreachableError",
    "EnvDocument",
    "EnvEntry",
    "ProvisioningPlan",
    "SetupAborted",
    "SetupConfig",
    "SetupError",
    "encode_value",
    "load_setup_config",
    "provision_database",
    "safe_random_string",
    "update_env_file",
]
