"""Distributed receiver sampling and seismogram collection for 3-D
staggered-grid finite-difference runs.

The package version comes from the VERSION file at the repository root.
"""

from __future__ import annotations
from pathlib import Path

from .arena import ArenaArray
from .collector import SeismogramCollector
from .fatal import AllocationError, FatalError
from .partition import GridPartition
from .receivers import ReceiverSet
from .sampler import ReceiverSampler, SeismoMode

__all__ = [
    "AllocationError",
    "ArenaArray",
    "FatalError",
    "GridPartition",
    "ReceiverSampler",
    "ReceiverSet",
    "SeismoMode",
    "SeismogramCollector",
    "__version__",
]


def _version_file() -> Path:
    return Path(__file__).resolve().parents[1] / "VERSION"


def _read_version() -> str:
    try:
        return _version_file().read_text(encoding="utf-8").strip()
    except OSError:
        # installed without the repo checkout
        return "0.3.0"


__version__ = _read_version()
