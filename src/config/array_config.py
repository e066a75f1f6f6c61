"""
Parser for the parity engine's plain-text array configuration.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from utils.errors import ConfigurationError

ENGINE_CONFIG_NAME = "snapraid"
CONFIG_SEARCH_DIRS = (Path("/usr/local/etc"), Path("/etc"))

_TOKEN_RE = re.compile(r'"([^"]*)"|\'([^\']*)\'|(\S+)')


@dataclass(frozen=True)
class DataDrive:
    """A named data drive and its mount path."""

    name: str
    path: str


@dataclass(frozen=True)
class OtherDirective:
    """A directive this tool does not interpret, kept verbatim."""

    key: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArrayConfig:
    """Structured view of the array configuration, in file order."""

    parity: tuple[str, ...] = ()
    data: tuple[DataDrive, ...] = ()
    content: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    other: tuple[OtherDirective, ...] = ()

    def to_text(self) -> str:
        """Render the configuration back to directive lines."""
        lines: list[str] = []
        lines.extend(_render("parity", [path]) for path in self.parity)
        lines.extend(_render("content", [path]) for path in self.content)
        lines.extend(_render("data", [drive.name, drive.path]) for drive in self.data)
        lines.extend(_render("exclude", [pattern]) for pattern in self.exclude)
        lines.extend(_render(item.key, item.args) for item in self.other)
        return "\n".join(lines) + ("\n" if lines else "")


def tokenize(line: str) -> list[str]:
    """Split a line into tokens, honoring quotes and trailing comments."""
    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(line):
        double, single, bare = match.groups()
        if bare is not None:
            if bare.startswith("#"):
                break
            token = bare
        else:
            token = double if double is not None else single
        if token.strip():
            tokens.append(token)
    return tokens


def parse_array_config(text: str) -> ArrayConfig:
    """Parse configuration text; malformed lines are skipped."""
    parity: list[str] = []
    content: list[str] = []
    data: list[DataDrive] = []
    exclude: list[str] = []
    other: list[OtherDirective] = []

    for line in text.splitlines():
        tokens = tokenize(line)
        if not tokens:
            continue
        key, args = tokens[0], tokens[1:]
        keyword = key.lower()
        if keyword == "parity":
            if args:
                parity.append(args[0])
        elif keyword == "content":
            if args:
                content.append(args[0])
        elif keyword in ("data", "disk"):
            if len(args) >= 2:
                data.append(DataDrive(name=args[0], path=args[1]))
        elif keyword == "exclude":
            if args:
                exclude.append(" ".join(args))
        else:
            other.append(OtherDirective(key=key, args=tuple(args)))

    return ArrayConfig(
        parity=tuple(parity),
        data=tuple(data),
        content=tuple(content),
        exclude=tuple(exclude),
        other=tuple(other),
    )


def find_array_config(override: Optional[Path] = None, name: str = ENGINE_CONFIG_NAME) -> Path:
    """Return the first readable configuration path in search order."""
    candidates: list[Path] = []
    if override is not None:
        candidates.append(Path(override).expanduser())
    candidates.extend(directory / f"{name}.conf" for directory in CONFIG_SEARCH_DIRS)
    for candidate in candidates:
        if candidate.is_file() and os.access(candidate, os.R_OK):
            return candidate
    searched = ", ".join(str(candidate) for candidate in candidates)
    raise ConfigurationError(f"No readable array configuration found (searched: {searched})")


def load_array_config(path: Path) -> ArrayConfig:
    """Read and parse the configuration file at path."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read array configuration {path}: {exc}") from exc
    return parse_array_config(text)


def _quote(token: str) -> str:
    if token and not any(char.isspace() for char in token) and token[0] not in "#\"'":
        return token
    if '"' not in token:
        return f'"{token}"'
    return f"'{token}'"


def _render(key: str, args: Iterable[str]) -> str:
    return " ".join([key, *(_quote(arg) for arg in args)])
