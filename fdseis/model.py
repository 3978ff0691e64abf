from __future__ import annotations

from typing import Optional

from .arena import ArenaArray
from .partition import GridPartition


def fill_homogeneous(
    partition: GridPartition,
    *,
    rho: ArenaArray,
    pi: ArenaArray,
    u: Optional[ArenaArray] = None,
    vp: float,
    vs: float = 0.0,
    rho_value: float,
) -> int:
    """Store a homogeneous model on the points this process owns.

    ``pi = vp^2 * rho`` and ``u = vs^2 * rho``.  Walks the global grid and
    writes only where :meth:`GridPartition.owns` is true, so each global
    point is stored by exactly one process.  Halo layers are left untouched.
    Returns the number of points written.
    """
    piv = float(vp) * float(vp) * float(rho_value)
    uv = float(vs) * float(vs) * float(rho_value)
    nxg, nyg, nzg = partition.global_shape
    count = 0
    for i in range(1, nxg + 1):
        for j in range(1, nyg + 1):
            for k in range(1, nzg + 1):
                owned, (ii, jj, kk) = partition.owns(i, j, k)
                if not owned:
                    continue
                rho[ii, jj, kk] = rho_value
                pi[ii, jj, kk] = piv
                if u is not None:
                    u[ii, jj, kk] = uv
                count += 1
    return count
