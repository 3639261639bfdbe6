"""
Version of the installed ``polkaledger-sdk`` distribution.

Source checkouts that were never installed read ``pyproject.toml`` instead.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "polkaledger-sdk"
FALLBACK_VERSION = "0.1.0"
PYPROJECT = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"


def _pyproject_version(path: pathlib.Path) -> str:
    try:
        with path.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION


def get_version(pyproject: pathlib.Path = PYPROJECT) -> str:
    """Installed version, else the checkout's declared version, else the fallback."""
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        return _pyproject_version(pyproject)


__version__ = get_version()
