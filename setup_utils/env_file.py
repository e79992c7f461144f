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

"""Reading and patching the runtime ``.env`` file.

The file is parsed into an ordered list of line records.  Lines that look like
``KEY=value`` become entries that can be updated in place; everything else
(comments, blank separators, exported shell lines) is carried through
verbatim.  Keys that are missing from the file are appended in declaration
order, preceded by an explanatory comment block the first time they appear.

Values are written unquoted because docker-compose reads the same file and
does not understand dotenv's quoting rules, so values with newlines or
surrounding whitespace are rejected instead of escaped.
"""

from base64 import b64encode
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional
import logging
import re
import secrets

from dotenv import dotenv_values

from setup_utils.errors import ConfigEncodingError

logger = logging.getLogger(__name__)

_ENTRY_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


@dataclass(frozen=True)
class EnvEntry:
    """A key managed by the setup script, with its default and comment block."""

    key: str
    default: Optional[str] = None
    comment: Optional[str] = None

    def resolve(self, answers: Mapping[str, str]) -> str:
        if self.key in answers:
            return answers[self.key]
        return self.default or ""


@dataclass
class EnvLine:
    """One line of an env file; ``key`` is ``None`` for raw lines."""

    text: str
    key: Optional[str] = None
    value: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "EnvLine":
        match = _ENTRY_PATTERN.match(text)
        if match is None:
            return cls(text=text)
        return cls(text=text, key=match.group(1), value=match.group(2))

    @classmethod
    def entry(cls, key: str, value: str) -> "EnvLine":
        return cls(text=f"{key}={value}", key=key, value=value)

    def render(self) -> str:
        if self.key is None:
            return self.text
        return f"{self.key}={self.value}"


class EnvDocument:
    """Ordered line records of an env file with map-based upserts."""

    def __init__(self, lines: Optional[List[EnvLine]] = None):
        self.lines: List[EnvLine] = list(lines or [])
        self._index: Dict[str, EnvLine] = {}
        for line in self.lines:
            # Only the first occurrence of a key is managed.
            if line.key is not None and line.key not in self._index:
                self._index[line.key] = line

    @classmethod
    def parse(cls, text: str) -> "EnvDocument":
        stripped = text.strip()
        if not stripped:
            return cls()
        return cls([EnvLine.parse(raw) for raw in stripped.split("\n")])

    def __contains__(self, key: str) -> bool:
        return key in self._index

    def get(self, key: str) -> Optional[str]:
        line = self._index.get(key)
        return line.value if line is not None else None

    def keys(self) -> List[str]:
        return list(self._index)

    def upsert(self, key: str, value: str, comment: Optional[str] = None) -> None:
        """Replace the value for ``key`` or append a new entry."""

        existing = self._index.get(key)
        if existing is not None:
            existing.value = value
            return

        if comment:
            self.lines.append(EnvLine(text=""))
            self.lines.extend(EnvLine(text=raw) for raw in comment.split("\n"))
        line = EnvLine.entry(key, value)
        self.lines.append(line)
        self._index[key] = line

    def render(self) -> str:
        body = "\n".join(line.render() for line in self.lines)
        return body.strip() + "\n"


def encode_value(value: str, key: Optional[str] = None) -> str:
    """Return ``value`` if it can be stored unquoted, else raise."""

    if not isinstance(value, str):
        raise ConfigEncodingError(f"'{value}' is not a string", key)
    if value.strip() != value:
        raise ConfigEncodingError(
            "Leading/trailing whitespace is not supported in config variables", key
        )
    if "\n" in value:
        raise ConfigEncodingError("Newlines are not supported in config variables", key)
    return value


def safe_random_string(length: int) -> str:
    """Return ``length`` random bytes as URL-safe base64 (``+/`` -> ``-_``)."""

    encoded = b64encode(secrets.token_bytes(length)).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_")


def apply_entries(text: str, entries: Iterable[EnvEntry], answers: Mapping[str, str]) -> str:
    """Return ``text`` patched so every entry has exactly one ``KEY=value`` line.

    Every value is encoded before the document is modified, so an invalid
    value leaves nothing half-applied.
    """

    resolved = [(entry, encode_value(entry.resolve(answers), entry.key)) for entry in entries]

    document = EnvDocument.parse(text)
    for entry, value in resolved:
        document.upsert(entry.key, value, entry.comment)
    return document.render()


def update_env_file(path: Path, entries: Iterable[EnvEntry], answers: Mapping[str, str]) -> Path:
    """Patch the env file at ``path`` in place, creating it when missing."""

    current = path.read_text(encoding="utf-8") if path.exists() else ""
    content = apply_entries(current, entries, answers)
    path.write_text(content, encoding="utf-8")
    logger.debug("Wrote %d bytes to %s", len(content), path)
    return path


def read_env_values(path: Path) -> Dict[str, str]:
    """Load the key/value pairs currently stored in ``path``."""

    if not path.exists():
        return {}
    raw_values = dotenv_values(str(path))
    return {key: value for key, value in raw_values.items() if value is not None}


__all__ = [
    "EnvDocument",
    "EnvEntry",
    "EnvLine",
    "apply_entries",
    "encode_value",
    "read_env_values",
    "safe_random_string",
    "update_env_file",
]
