from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from .arena import ArenaArray, f3tensor, free_f3tensor
from .collector import SeismogramCollector
from .config import Config
from .constants import CHECK_RTOL, SEISMO_DTYPE, STENCIL_REACH
from .context import SimContext
from .model import fill_homogeneous
from .partition import GridPartition
from .receivers import ReceiverSet
from .sampler import ReceiverSampler, SeismoMode, WavefieldState, sample_column

StepFn = Callable[[int, WavefieldState], None]


@dataclass
class SamplingResult:
    mode: SeismoMode
    ntr_glob: int
    ntr_loc: int
    ns: int
    traces: Dict[str, ArenaArray]

    def release(self) -> None:
        for a in self.traces.values():
            a.destroy(((1, self.ntr_glob), (1, self.ns)))


def _check_state_bounds(state: Optional[WavefieldState], ctx: SimContext) -> None:
    """The halo must cover the receiver stencils; a caller-supplied state
    must have exactly the local bounds of ``ctx``."""
    if ctx.halo < STENCIL_REACH:
        raise ValueError(f"halo {ctx.halo} is shallower than the stencil reach {STENCIL_REACH}")
    if state is None:
        return
    want = ctx.partition.local_bounds(ctx.halo)
    bad = sorted(n for n, a in state.fields().items() if a.bounds != want)
    if bad:
        raise ValueError(f"state fields {bad} do not have the local bounds {want}")


def run_sampling(
    ctx: SimContext,
    cfg: Config,
    step_fn: StepFn,
    *,
    mode: Optional[SeismoMode] = None,
    state: Optional[WavefieldState] = None,
) -> SamplingResult:
    """Advance ``cfg.seismo.nt`` steps with ``step_fn``, sample, and collect.

    ``step_fn(nt, state)`` stands in for the time-stepping kernels and halo
    exchange: after it returns, ``state`` must hold valid values including
    the halo.  Collection is collective, so every process must call this.
    """
    seismo_mode = SeismoMode.parse(cfg.seismo.mode if mode is None else mode)
    recs = ReceiverSet.from_points(cfg.seismo.receivers)
    local = recs.localize(ctx.partition)
    sampler = ReceiverSampler(local, ctx.spacing, seismo_mode)
    ns = cfg.seismo.ns
    own_state = state is None
    _check_state_bounds(state, ctx)
    seis = sampler.allocate(ns)
    st = WavefieldState.allocate(ctx.partition, ctx.halo) if own_state else state
    try:
        for nt in range(1, cfg.seismo.nt + 1):
            step_fn(nt, st)
            col = sample_column(nt, cfg.seismo.ndt)
            if col is not None and col <= ns:
                sampler.sample(col, st, seis)
        collector = SeismogramCollector(ctx.comm, local.flags)
        traces = collector.collect_set(seis, recs.ntr_glob)
    finally:
        seis.release()
        if own_state:
            st.release()
    return SamplingResult(
        mode=seismo_mode,
        ntr_glob=recs.ntr_glob,
        ntr_loc=local.ntr_loc,
        ns=ns,
        traces=traces,
    )


# ---------------------------------------------------------------------------
# Analytic-field consistency check
# ---------------------------------------------------------------------------


def _analytic(name: str, x, y, z, t: float):
    # smooth, non-symmetric closed forms; each field differs per component
    s = 1.0 + 0.05 * t
    if name == "vx":
        return s * np.sin(0.31 * x + 0.17 * y) + 0.02 * z
    if name == "vy":
        return s * np.cos(0.23 * y - 0.11 * z) + 0.03 * x
    if name == "vz":
        return s * np.sin(0.19 * z + 0.035 * x) - 0.01 * y
    if name == "sxx":
        return s * (1.0 + 0.1 * x)
    if name == "syy":
        return s * (2.0 - 0.05 * y)
    if name == "szz":
        return s * (0.5 + 0.02 * z * z)
    if name == "pi":
        return 4.0 + 0.1 * x + 0.2 * y + 0.3 * z
    if name == "u":
        return 1.0 + 0.01 * (x + y + z)
    raise KeyError(name)


def fill_analytic(state: WavefieldState, partition: GridPartition, t: float) -> None:
    """Set every local point, halo included, from its global coordinate."""
    for name, arr in state.fields().items():
        axes = [np.arange(lo, hi + 1, dtype=np.float64) for lo, hi in arr.bounds]
        gx, gy, gz = (ax + p * n for ax, p, n in zip(axes, partition.pos, partition.local_shape))
        x, y, z = np.meshgrid(gx, gy, gz, indexing="ij")
        arr.view()[...] = _analytic(name, x, y, z, float(t)).astype(SEISMO_DTYPE)


def analytic_stepper(partition: GridPartition) -> StepFn:
    def step(nt: int, state: WavefieldState) -> None:
        fill_analytic(state, partition, float(nt))

    return step


@dataclass(frozen=True)
class CheckReport:
    ok: bool
    max_abs_err: float
    quantities: tuple


def check_against_serial(ctx: SimContext, cfg: Config, *, mode: Optional[SeismoMode] = None) -> Optional[CheckReport]:
    """Collect distributed seismograms and compare them on rank 0 with a
    single-process evaluation of the same analytic wavefield.

    Returns the report on rank 0 and None elsewhere.
    """
    dist = run_sampling(ctx, cfg, analytic_stepper(ctx.partition), mode=mode)
    if ctx.rank != 0:
        dist.release()
        return None

    serial_part = GridPartition(global_shape=ctx.partition.global_shape, procs=(1, 1, 1), pos=(0, 0, 0))
    serial_ctx = SimContext(
        comm=None, rank=0, size=1, partition=serial_part, spacing=ctx.spacing, halo=ctx.halo
    )
    ref = run_sampling(serial_ctx, cfg, analytic_stepper(serial_part), mode=mode)

    ok = True
    max_err = 0.0
    for q, got in dist.traces.items():
        want = ref.traces[q].view()
        diff = np.abs(got.view().astype(np.float64) - want.astype(np.float64))
        if diff.size:
            max_err = max(max_err, float(diff.max()))
        ok = ok and bool(np.allclose(got.view(), want, rtol=CHECK_RTOL, atol=CHECK_RTOL))
    report = CheckReport(ok=ok, max_abs_err=max_err, quantities=tuple(dist.traces))
    ref.release()
    dist.release()
    return report


# ---------------------------------------------------------------------------
# Setup summary
# ---------------------------------------------------------------------------


def setup_model(ctx: SimContext, cfg: Config) -> Dict[str, float]:
    """Allocate material arrays, fill the homogeneous model, and report."""
    bounds = ctx.partition.local_bounds(ctx.halo)
    lims = [x for pair in bounds for x in pair]
    rho = f3tensor(*lims)
    pi = f3tensor(*lims)
    u = f3tensor(*lims)
    written = fill_homogeneous(
        ctx.partition, rho=rho, pi=pi, u=u,
        vp=cfg.model.vp, vs=cfg.model.vs, rho_value=cfg.model.rho,
    )
    recs = ReceiverSet.from_points(cfg.seismo.receivers).localize(ctx.partition)
    summary = {
        "points": float(written),
        "pi_max": pi.abs_max(),
        "u_max": u.abs_max(),
        "ntr_loc": float(recs.ntr_loc),
    }
    for a in (rho, pi, u):
        free_f3tensor(a, *lims)
    return summary
