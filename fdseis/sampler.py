"""Receiver sampling of the local wavefield.

Fields are :class:`~fdseis.arena.ArenaArray` 3-tensors indexed ``[x, y, z]``
over the local bounds of the partition, halo included.  Each call to
:meth:`ReceiverSampler.sample` writes one column of every requested local
seismogram; row ``k`` belongs to the ``k``-th owned receiver.

Derivative stencils are first order and read one point beyond the receiver
in each direction:

- curl partials use forward differences (``i`` and ``i + 1``),
- divergence partials use backward differences (``i - 1`` and ``i``),

matching the staggered placement of velocity components.  The halo must be
at least ``STENCIL_REACH`` deep and populated before sampling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Tuple

import numpy as np

from .arena import ArenaArray, f3tensor, fmatrix
from .constants import SEISMO_DTYPE
from .partition import GridPartition
from .receivers import LocalReceivers


class SeismoMode(IntEnum):
    VELOCITY = 1
    PRESSURE = 2
    DIV_CURL = 3
    ALL = 4

    @classmethod
    def parse(cls, value) -> "SeismoMode":
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key.isdigit():
                return cls(int(key))
            if key not in cls.__members__:
                raise ValueError(f"seismo mode must be one of {sorted(cls.__members__)} or 1..4, got {value!r}")
            return cls[key]
        return cls(int(value))

    @property
    def quantities(self) -> Tuple[str, ...]:
        return _QUANTITIES[self]


_QUANTITIES = {
    SeismoMode.VELOCITY: ("vx", "vy", "vz"),
    SeismoMode.PRESSURE: ("p",),
    SeismoMode.DIV_CURL: ("div", "curl"),
    SeismoMode.ALL: ("vx", "vy", "vz", "p", "div", "curl"),
}


def signed_sqrt(x):
    """``sign(x) * sqrt(|x|)``; keeps the sign, compresses the range."""
    return np.sign(x) * np.sqrt(np.abs(x))


def sample_column(nt: int, ndt: int) -> Optional[int]:
    """Seismogram column for time step ``nt`` (1-based), or None if not sampled.

    Samples are taken every ``ndt`` steps; column ``c`` holds step ``c * ndt``.
    """
    step = int(nt)
    every = int(ndt)
    if every <= 0:
        raise ValueError("ndt must be >= 1")
    if step <= 0 or step % every:
        return None
    return step // every


@dataclass
class WavefieldState:
    vx: ArenaArray
    vy: ArenaArray
    vz: ArenaArray
    sxx: Optional[ArenaArray] = None
    syy: Optional[ArenaArray] = None
    szz: Optional[ArenaArray] = None
    pi: Optional[ArenaArray] = None
    u: Optional[ArenaArray] = None
    bounds: Tuple[Tuple[int, int], ...] = field(default=())

    @classmethod
    def allocate(cls, partition: GridPartition, halo: int) -> "WavefieldState":
        bounds = partition.local_bounds(halo)
        lims = [x for pair in bounds for x in pair]

        def _t():
            return f3tensor(*lims)

        return cls(
            vx=_t(), vy=_t(), vz=_t(),
            sxx=_t(), syy=_t(), szz=_t(),
            pi=_t(), u=_t(),
            bounds=bounds,
        )

    def fields(self) -> Dict[str, ArenaArray]:
        names = ("vx", "vy", "vz", "sxx", "syy", "szz", "pi", "u")
        return {n: getattr(self, n) for n in names if getattr(self, n) is not None}

    def release(self) -> None:
        for a in self.fields().values():
            a.destroy(self.bounds or a.bounds)


@dataclass
class SeismogramSet:
    """Local seismogram matrices ``[1..ntr_loc][1..ns]``, one per quantity."""

    mode: SeismoMode
    ntr: int
    ns: int
    matrices: Dict[str, ArenaArray]

    @classmethod
    def allocate(cls, mode: SeismoMode, ntr: int, ns: int) -> "SeismogramSet":
        m = SeismoMode.parse(mode)
        mats = {q: fmatrix(1, int(ntr), 1, int(ns)) for q in m.quantities}
        return cls(mode=m, ntr=int(ntr), ns=int(ns), matrices=mats)

    def __getitem__(self, name: str) -> ArenaArray:
        return self.matrices[name]

    def release(self) -> None:
        for a in self.matrices.values():
            a.destroy(((1, self.ntr), (1, self.ns)))


def velocity_gradients(state: WavefieldState, i, j, k, inv: Tuple[float, float, float]):
    """First-order velocity partials at local points ``(i, j, k)``.

    Returns ``(curl_partials, div_partials)`` where curl_partials is
    ``(vxy, vxz, vyx, vyz, vzx, vzy)`` and div_partials ``(vxx, vyy, vzz)``;
    ``vab`` is the derivative of ``va`` along ``b``.
    """
    idx, idy, idz = inv
    vx, vy, vz = state.vx, state.vy, state.vz

    vx0 = vx.gather(i, j, k)
    vy0 = vy.gather(i, j, k)
    vz0 = vz.gather(i, j, k)

    vxy = (vx.gather(i, j + 1, k) - vx0) * idy
    vxz = (vx.gather(i, j, k + 1) - vx0) * idz
    vyx = (vy.gather(i + 1, j, k) - vy0) * idx
    vyz = (vy.gather(i, j, k + 1) - vy0) * idz
    vzx = (vz.gather(i + 1, j, k) - vz0) * idx
    vzy = (vz.gather(i, j + 1, k) - vz0) * idy

    vxx = (vx0 - vx.gather(i - 1, j, k)) * idx
    vyy = (vy0 - vy.gather(i, j - 1, k)) * idy
    vzz = (vz0 - vz.gather(i, j, k - 1)) * idz

    return (vxy, vxz, vyx, vyz, vzx, vzy), (vxx, vyy, vzz)


def divergence_curl(state: WavefieldState, i, j, k, inv: Tuple[float, float, float]):
    (vxy, vxz, vyx, vyz, vzx, vzy), (vxx, vyy, vzz) = velocity_gradients(state, i, j, k, inv)

    d1 = vyz - vzy
    d2 = vzx - vxz
    d3 = vxy - vyx
    amp = state.u.gather(i, j, k) * (d1 * np.abs(d1) + d2 * np.abs(d2) + d3 * np.abs(d3))
    curl = signed_sqrt(amp)

    div = (vxx + vyy + vzz) * np.sqrt(state.pi.gather(i, j, k))
    return div, curl


def pressure(state: WavefieldState, i, j, k):
    return -(state.sxx.gather(i, j, k) + state.syy.gather(i, j, k) + state.szz.gather(i, j, k)) / 3


_REQUIRED = {
    SeismoMode.VELOCITY: ("vx", "vy", "vz"),
    SeismoMode.PRESSURE: ("sxx", "syy", "szz"),
    SeismoMode.DIV_CURL: ("vx", "vy", "vz", "pi", "u"),
    SeismoMode.ALL: ("vx", "vy", "vz", "sxx", "syy", "szz", "pi", "u"),
}


class ReceiverSampler:
    def __init__(self, receivers: LocalReceivers, spacing: Tuple[float, float, float], mode):
        self.receivers = receivers
        self.mode = SeismoMode.parse(mode)
        dx, dy, dz = (float(h) for h in spacing)
        if dx <= 0.0 or dy <= 0.0 or dz <= 0.0:
            raise ValueError("grid spacing must be positive")
        self.inv = (1.0 / dx, 1.0 / dy, 1.0 / dz)
        loc = receivers.local
        self._i = np.ascontiguousarray(loc[:, 0])
        self._j = np.ascontiguousarray(loc[:, 1])
        self._k = np.ascontiguousarray(loc[:, 2])
        self._rows = np.arange(1, receivers.ntr_loc + 1, dtype=np.int64)

    def allocate(self, ns: int) -> SeismogramSet:
        return SeismogramSet.allocate(self.mode, self.receivers.ntr_loc, ns)

    def _check_state(self, state: WavefieldState) -> None:
        missing = [n for n in _REQUIRED[self.mode] if getattr(state, n) is None]
        if missing:
            raise ValueError(f"seismo mode {self.mode.name} needs fields missing from state: {missing}")

    def sample(self, time_index: int, state: WavefieldState, seis: SeismogramSet) -> None:
        """Write column ``time_index`` of every requested quantity."""
        self._check_state(state)
        if self.receivers.ntr_loc == 0:
            return
        i, j, k = self._i, self._j, self._k
        rows, col = self._rows, int(time_index)
        mode = self.mode

        if mode in (SeismoMode.VELOCITY, SeismoMode.ALL):
            seis["vx"].scatter(state.vx.gather(i, j, k), rows, col)
            seis["vy"].scatter(state.vy.gather(i, j, k), rows, col)
            seis["vz"].scatter(state.vz.gather(i, j, k), rows, col)
        if mode in (SeismoMode.PRESSURE, SeismoMode.ALL):
            seis["p"].scatter(pressure(state, i, j, k).astype(SEISMO_DTYPE), rows, col)
        if mode in (SeismoMode.DIV_CURL, SeismoMode.ALL):
            div, curl = divergence_curl(state, i, j, k, self.inv)
            seis["div"].scatter(div.astype(SEISMO_DTYPE), rows, col)
            seis["curl"].scatter(curl.astype(SEISMO_DTYPE), rows, col)
