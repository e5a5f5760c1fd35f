"""ens-analyzer: ENS integration scoring for public source repositories."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ens-analyzer")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
