from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from .fatal import warning
from .partition import GridPartition


@dataclass(frozen=True)
class ReceiverSet:
    """Ordered receivers; trace ``t`` (1-based) is ``coords[t - 1]``."""

    coords: np.ndarray

    @classmethod
    def from_points(cls, points: Iterable[Sequence[int]]) -> "ReceiverSet":
        arr = np.asarray([tuple(int(c) for c in p) for p in points], dtype=np.int64)
        if arr.size == 0:
            arr = np.empty((0, 3), dtype=np.int64)
        if arr.ndim != 2 or arr.shape[1] != 3:
            raise ValueError("receiver points must be (ix, iy, iz) triples")
        return cls(coords=arr)

    @property
    def ntr_glob(self) -> int:
        return int(self.coords.shape[0])

    def localize(self, partition: GridPartition) -> "LocalReceivers":
        flags = np.zeros((self.ntr_glob,), dtype=bool)
        owned_traces: list[int] = []
        local: list[tuple[int, int, int]] = []
        outside: list[int] = []
        for t, (ix, iy, iz) in enumerate(self.coords.tolist(), start=1):
            if not partition.in_domain(ix, iy, iz):
                outside.append(t)
                continue
            owned, lc = partition.owns(ix, iy, iz)
            if owned:
                flags[t - 1] = True
                owned_traces.append(t)
                local.append(lc)
        if outside:
            listed = ", ".join(str(t) for t in outside[:4])
            warning(f"{len(outside)} receiver(s) outside the global grid are not sampled: traces {listed}")
        local_arr = np.asarray(local, dtype=np.int64).reshape((-1, 3))
        return LocalReceivers(
            ntr_glob=self.ntr_glob,
            flags=flags,
            traces=np.asarray(owned_traces, dtype=np.int64),
            local=local_arr,
        )


@dataclass(frozen=True)
class LocalReceivers:
    """
    Receivers owned by one process, compacted.

    ``flags[t - 1]`` is true iff this process owns global trace ``t``.
    Local row ``k`` (1-based) is the ``k``-th owned trace in ascending global
    order: ``traces[k - 1]`` is its global trace number and ``local[k - 1]``
    its local grid coordinate.
    """

    ntr_glob: int
    flags: np.ndarray
    traces: np.ndarray
    local: np.ndarray

    @property
    def ntr_loc(self) -> int:
        return int(self.traces.shape[0])
