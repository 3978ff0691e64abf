"""
GridPartition module.

Static cartesian block decomposition of the global grid
``[1..NXG] x [1..NYG] x [1..NZG]`` over ``NPROCX x NPROCY x NPROCZ`` processes.

Each process is identified by a rank-coordinate ``(px, py, pz)`` and owns the
block of ``NX x NY x NZ`` points (``NX = NXG // NPROCX`` etc.) whose global
indices satisfy ``p == (i - 1) // N`` on every axis.  Local coordinates are
1-based: ``local = global - p * N``, so ``global = local + p * N``.

The rank id is ``rank = px + py * NPROCX + pz * NPROCX * NPROCY``.

Totality and disjointness of the tiling follow from exact divisibility of
every global extent by its process count; this is verified once when the
partition is built, never per lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

Coord = Tuple[int, int, int]


@dataclass(frozen=True)
class GridPartition:
    """
    Ownership rule for one process.

    Parameters
    ----------
    global_shape : (NXG, NYG, NZG)
        Global grid extents.
    procs : (NPROCX, NPROCY, NPROCZ)
        Process-grid shape.
    pos : (px, py, pz)
        Rank-coordinate of the calling process (0-based).
    """

    global_shape: Coord
    procs: Coord
    pos: Coord

    def __post_init__(self):
        gs = tuple(int(x) for x in self.global_shape)
        pr = tuple(int(x) for x in self.procs)
        ps = tuple(int(x) for x in self.pos)
        if len(gs) != 3 or len(pr) != 3 or len(ps) != 3:
            raise ValueError("global_shape, procs and pos must have three entries")
        for axis, (g, n, p) in enumerate(zip(gs, pr, ps)):
            name = "xyz"[axis]
            if g <= 0:
                raise ValueError(f"global extent along {name} must be positive, got {g}")
            if n <= 0:
                raise ValueError(f"process count along {name} must be positive, got {n}")
            if g % n != 0:
                raise ValueError(
                    f"global extent {g} along {name} is not divisible by {n} processes; "
                    "blocks would not tile the grid"
                )
            if not 0 <= p < n:
                raise ValueError(f"rank-coordinate {p} along {name} outside process grid [0, {n})")
        object.__setattr__(self, "global_shape", gs)
        object.__setattr__(self, "procs", pr)
        object.__setattr__(self, "pos", ps)

    @classmethod
    def for_rank(cls, rank: int, global_shape: Coord, procs: Coord) -> "GridPartition":
        return cls(global_shape=global_shape, procs=procs, pos=rank_coord(rank, procs))

    @property
    def local_shape(self) -> Coord:
        return tuple(g // n for g, n in zip(self.global_shape, self.procs))

    @property
    def rank(self) -> int:
        return rank_of(self.pos, self.procs)

    def owns(self, ix: int, iy: int, iz: int) -> Tuple[bool, Coord]:
        """Return (owned, local coordinate) for a global coordinate.

        The local coordinate is computed for every input; it lies inside the
        owned block only when ``owned`` is true.
        """
        nx, ny, nz = self.local_shape
        px, py, pz = self.pos
        owned = (
            px == (ix - 1) // nx
            and py == (iy - 1) // ny
            and pz == (iz - 1) // nz
        )
        return owned, (ix - px * nx, iy - py * ny, iz - pz * nz)

    def to_global(self, lx: int, ly: int, lz: int) -> Coord:
        nx, ny, nz = self.local_shape
        px, py, pz = self.pos
        return lx + px * nx, ly + py * ny, lz + pz * nz

    def owner_of(self, ix: int, iy: int, iz: int) -> int:
        nx, ny, nz = self.local_shape
        return rank_of(((ix - 1) // nx, (iy - 1) // ny, (iz - 1) // nz), self.procs)

    def in_domain(self, ix: int, iy: int, iz: int) -> bool:
        gx, gy, gz = self.global_shape
        return 1 <= ix <= gx and 1 <= iy <= gy and 1 <= iz <= gz

    def local_bounds(self, halo: int = 0) -> Tuple[Tuple[int, int], ...]:
        """ArenaArray bounds of a local field with ``halo`` ghost layers per side."""
        h = int(halo)
        return tuple((1 - h, n + h) for n in self.local_shape)

    def owned_global_ranges(self) -> Tuple[Tuple[int, int], ...]:
        """Inclusive global index range owned along each axis."""
        return tuple(
            (p * n + 1, (p + 1) * n) for p, n in zip(self.pos, self.local_shape)
        )


def rank_coord(rank: int, procs: Coord) -> Coord:
    nx, ny, nz = (int(x) for x in procs)
    r = int(rank)
    if not 0 <= r < nx * ny * nz:
        raise ValueError(f"rank {r} outside process grid of size {nx * ny * nz}")
    return r % nx, (r // nx) % ny, r // (nx * ny)


def rank_of(pos: Coord, procs: Coord) -> int:
    px, py, pz = pos
    nx, ny, _ = procs
    return px + py * nx + pz * nx * ny
