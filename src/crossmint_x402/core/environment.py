"""
Resolution of the key/value settings the webhook and wallet helpers read.

Three layers are merged: a base mapping (``os.environ`` by default), an
optional ``.env`` file that only fills gaps, and explicit overrides that
always win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

__all__ = ["Settings", "build_settings", "parse_env_file"]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_file(path: Path) -> Dict[str, str]:
    """
    Read ``KEY=VALUE`` lines; a missing file yields an empty mapping.

    ``export`` prefixes, comments and surrounding quotes are tolerated.
    """
    values: Dict[str, str] = {}
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return values

    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, value = line.split("=", 1)
        values[key.strip()] = _unquote(value.strip())
    return values


@dataclass(frozen=True)
class Settings:
    variables: Mapping[str, str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.variables.get(key)
        if value is None or value == "":
            return default
        return value


def build_settings(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Merge ``base`` < ``env_file`` < ``overrides``; ``env_file=None`` skips the file."""
    merged: Dict[str, str] = dict(os.environ if base is None else base)

    if env_file is not None:
        for key, value in parse_env_file(Path(env_file)).items():
            merged.setdefault(key, value)

    if overrides:
        merged.update({key: value for key, value in overrides.items() if value is not None})

    return Settings(variables=merged)
