"""
Version of the bridge transfer SDK.

Installed packages report their metadata version; a source checkout reads
``pyproject.toml`` next to the package.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "bridge-transfer-sdk"
FALLBACK_VERSION = "0.3.0"
PYPROJECT = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"


def _source_version() -> str:
    try:
        with open(PYPROJECT, "rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION


def read_version() -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        return _source_version()


__version__ = read_version()
