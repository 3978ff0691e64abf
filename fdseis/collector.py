"""Cross-process seismogram collection.

Every process holds a compacted local matrix: row ``k`` is its ``k``-th owned
trace.  :meth:`SeismogramCollector.collect` scatters those rows into a
zero-filled ``[1..ntr_glob][1..ns]`` scratch matrix at their global rows and
sums the scratch matrices of all processes with ``Allreduce(SUM)``.

Each global trace has exactly one owner (the partition tiles the grid
disjointly), so every cell receives one non-zero contribution and the sum
equals a routed gather.  The result is identical on all processes.

``collect`` is collective: every process of the communicator must call it
with the same ``(ntr_glob, ns)``.  It blocks until all have contributed and
has no timeout.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from .arena import ArenaArray, fmatrix, free_matrix
from .context import MPI
from .sampler import SeismogramSet


class SeismogramCollector:
    def __init__(self, comm, flags):
        self.comm = comm
        self.flags = np.asarray(flags).astype(bool)

    @property
    def ntr_loc(self) -> int:
        return int(np.count_nonzero(self.flags))

    def scatter(self, local: ArenaArray, ntr_glob: int, ns: int) -> ArenaArray:
        """Zero ``[1..ntr_glob][1..ns]`` matrix holding this process's rows."""
        full = fmatrix(1, ntr_glob, 1, ns)
        k = 0
        for t in range(1, int(ntr_glob) + 1):
            if self.flags[t - 1]:
                k += 1
                full.row(t)[:] = local.row(k)
        return full

    def collect(self, local: ArenaArray, ntr_glob: int, ns: int) -> ArenaArray:
        scratch = self.scatter(local, ntr_glob, ns)
        if self.comm is None:
            return scratch
        full = fmatrix(1, ntr_glob, 1, ns)
        op = MPI.SUM if MPI is not None else None
        self.comm.Allreduce(scratch.buffer, full.buffer, op=op)
        free_matrix(scratch, 1, ntr_glob, 1, ns)
        return full

    def collect_set(self, seis: SeismogramSet, ntr_glob: int) -> Dict[str, ArenaArray]:
        """Collect every quantity of ``seis``; same order on every process."""
        return {q: self.collect(seis[q], ntr_glob, seis.ns) for q in seis.mode.quantities}
