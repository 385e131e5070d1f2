"""Expose the distribution version for health checks and diagnostics."""

from __future__ import annotations

import re
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "ukpayroll"

_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_VERSION_LINE = re.compile(r'^version\s*=\s*"(?P<version>[^"]*)"')


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed version, reading ``pyproject.toml`` for source checkouts."""

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return _read_version_from_pyproject(_PROJECT_ROOT / "pyproject.toml")


def _read_version_from_pyproject(pyproject_path: Path) -> str:
    """Return the ``[project]`` version declared in ``pyproject_path``."""

    if not pyproject_path.exists():  # pragma: no cover - repository invariant
        raise RuntimeError(f"Unable to locate project metadata at {pyproject_path}")

    in_project_table = False
    for raw_line in pyproject_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("["):
            in_project_table = line == "[project]"
            continue
        if not in_project_table:
            continue
        match = _VERSION_LINE.match(line)
        if match and match.group("version"):
            return match.group("version")

    raise RuntimeError("Unable to determine project version from pyproject.toml")


__all__ = ["PACKAGE_NAME", "get_project_version"]
