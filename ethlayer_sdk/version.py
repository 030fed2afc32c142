"""
Version information for the EthLayer SDK.

The installed distribution is authoritative. A source checkout that was
never installed reads ``[project].version`` from its pyproject.toml.
"""
import importlib.metadata
import pathlib
from typing import Optional

import tomli

DISTRIBUTION = "ethlayer-sdk"
FALLBACK_VERSION = "0.1.0"
PYPROJECT = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"


def _pyproject_version(path: pathlib.Path = PYPROJECT) -> Optional[str]:
    try:
        with path.open("rb") as f:
            project = tomli.load(f).get("project", {})
    except (OSError, tomli.TOMLDecodeError):
        return None
    version = project.get("version")
    return version if isinstance(version, str) else None


def get_version() -> str:
    """Installed version, else the checkout's pyproject version, else the fallback"""
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        return _pyproject_version() or FALLBACK_VERSION


__version__ = get_version()
