from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

try:
    import mpi4py

    mpi4py.rc.initialize = False
    mpi4py.rc.finalize = False
    from mpi4py import MPI
except ImportError:
    MPI = None

from .config import Config
from .partition import GridPartition


@dataclass(frozen=True)
class SimContext:
    """Per-process run context, built once and fixed for the run.

    Holds the communicator, rank, partition (extents and rank-coordinate),
    grid spacing and halo depth.
    """

    comm: object
    rank: int
    size: int
    partition: GridPartition
    spacing: Tuple[float, float, float]
    halo: int
    owns_mpi_init: bool = False


def make_context(cfg: Config, *, comm, rank: int, size: int, owns_mpi_init: bool = False) -> SimContext:
    g = cfg.grid
    nprocs = g.nprocx * g.nprocy * g.nprocz
    if int(size) != nprocs:
        raise ValueError(
            f"process grid {g.nprocx}x{g.nprocy}x{g.nprocz} needs {nprocs} processes, "
            f"launched with {int(size)}"
        )
    part = GridPartition.for_rank(int(rank), g.global_shape, g.procs)
    return SimContext(
        comm=comm,
        rank=int(rank),
        size=int(size),
        partition=part,
        spacing=g.spacing,
        halo=int(g.halo),
        owns_mpi_init=owns_mpi_init,
    )


def init_context(cfg: Config, *, use_mpi: bool = True) -> SimContext:
    if not use_mpi or MPI is None:
        if use_mpi:
            print("[fdseis] mpi4py unavailable; running single-process", flush=True)
        return make_context(cfg, comm=None, rank=0, size=1)

    owns_mpi_init = False
    if not MPI.Is_initialized():
        MPI.Init()
        owns_mpi_init = True
    comm = MPI.COMM_WORLD
    ctx = make_context(
        cfg,
        comm=comm,
        rank=comm.Get_rank(),
        size=comm.Get_size(),
        owns_mpi_init=owns_mpi_init,
    )
    part = ctx.partition
    print(
        f"[fdseis rank={ctx.rank}] pos={part.pos} block={part.local_shape} "
        f"global={part.global_shape}",
        flush=True,
    )
    return ctx


def finalize_context(ctx: SimContext) -> None:
    if ctx.owns_mpi_init and MPI is not None and MPI.Is_initialized() and not MPI.Is_finalized():
        ctx.comm.Barrier()
        MPI.Finalize()
