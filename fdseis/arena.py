"""Arbitrary-bound contiguous arrays.

Every simulation buffer (wavefield, material parameters, seismograms) is an
:class:`ArenaArray`: one flat zero-filled numpy buffer plus per-axis
``(lower, upper)`` bounds.  Storage is row-major, last axis fastest.

Addressing
----------
At creation the array precomputes ``base = -sum(lower_i * stride_i)`` so that
the flat offset of a coordinate is ``base + sum(c_i * stride_i)``.  Any lower
bound (1, 0, or a negative halo bound) therefore addresses the first element
directly without a per-access subtraction.

Two access paths exist:

- ``a[i, j, k]`` / ``a[i, j, k] = x``: unchecked.  Out-of-bounds coordinates
  are a caller error; they may raise or silently alias another element.
- ``a.at(i, j, k)`` / ``a.put(i, j, k, value=x)``: bounds-checked, raising
  ``IndexError``.  Use in tests and debug code.

Ownership is exclusive: an array is released exactly once with
:func:`destroy` using its creation bounds.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .fatal import AllocationError

Bounds = Tuple[Tuple[int, int], ...]

_MAX_NDIM = 4


def _normalize_bounds(bounds: Sequence[Sequence[int]]) -> Bounds:
    out = []
    for axis, pair in enumerate(bounds):
        lo, hi = (int(x) for x in pair)
        # hi == lo - 1 is an empty axis (e.g. a process owning no receivers)
        if hi < lo - 1:
            raise ValueError(f"axis {axis}: upper bound {hi} < lower bound {lo} - 1")
        out.append((lo, hi))
    if not 1 <= len(out) <= _MAX_NDIM:
        raise ValueError(f"ArenaArray supports 1..{_MAX_NDIM} dimensions, got {len(out)}")
    return tuple(out)


def _row_major_strides(shape: Tuple[int, ...]) -> Tuple[int, ...]:
    strides = [1] * len(shape)
    for d in range(len(shape) - 2, -1, -1):
        strides[d] = strides[d + 1] * shape[d + 1]
    return tuple(strides)


class ArenaArray:
    __slots__ = ("bounds", "shape", "dtype", "_strides", "_base", "_buf")

    def __init__(self, bounds: Sequence[Sequence[int]], dtype=np.float32, *, func: str = "create"):
        self.bounds: Bounds = _normalize_bounds(bounds)
        self.shape = tuple(hi - lo + 1 for lo, hi in self.bounds)
        self.dtype = np.dtype(dtype)
        self._strides = _row_major_strides(self.shape)
        self._base = -sum(lo * s for (lo, _), s in zip(self.bounds, self._strides))
        size = int(np.prod(self.shape, dtype=np.int64))
        try:
            self._buf = np.zeros(size, dtype=self.dtype)
        except (MemoryError, ValueError) as exc:
            raise AllocationError(func, size * self.dtype.itemsize, str(exc)) from exc

    @classmethod
    def create(cls, bounds: Sequence[Sequence[int]], dtype=np.float32, *, func: str = "create") -> "ArenaArray":
        """Allocate a zero-filled array of the variant matching ``len(bounds)``."""
        ndim = len(bounds)
        klass = _VARIANTS.get(ndim)
        if klass is None:
            raise ValueError(f"ArenaArray supports 1..{_MAX_NDIM} dimensions, got {ndim}")
        return klass(bounds, dtype, func=func)

    @property
    def ndim(self) -> int:
        return len(self.bounds)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape, dtype=np.int64))

    @property
    def released(self) -> bool:
        return self._buf is None

    @property
    def buffer(self) -> np.ndarray:
        """Flat contiguous backing buffer (shared memory, not a copy)."""
        self._require_live()
        return self._buf

    def _require_live(self) -> None:
        if self._buf is None:
            raise ValueError("ArenaArray used after destroy()")

    # -- unchecked path ---------------------------------------------------

    def _offset(self, idx) -> int:
        off = self._base
        for c, s in zip(idx, self._strides):
            off += c * s
        return off

    def __getitem__(self, idx):
        return self._buf[self._offset(idx)]

    def __setitem__(self, idx, value) -> None:
        self._buf[self._offset(idx)] = value

    def offsets(self, *coords) -> np.ndarray:
        """Flat offsets for arrays of coordinates, one array per axis."""
        off = np.full(np.shape(coords[0]), self._base, dtype=np.int64)
        for c, s in zip(coords, self._strides):
            off += np.asarray(c, dtype=np.int64) * s
        return off

    def gather(self, *coords) -> np.ndarray:
        return self._buf[self.offsets(*coords)]

    def scatter(self, values, *coords) -> None:
        self._buf[self.offsets(*coords)] = values

    # -- checked path -----------------------------------------------------

    def check_index(self, idx) -> Tuple[int, ...]:
        self._require_live()
        if not isinstance(idx, tuple):
            idx = (idx,)
        if len(idx) != self.ndim:
            raise IndexError(f"expected {self.ndim} indices, got {len(idx)}")
        out = tuple(int(c) for c in idx)
        for axis, (c, (lo, hi)) in enumerate(zip(out, self.bounds)):
            if c < lo or c > hi:
                raise IndexError(f"index {c} out of bounds [{lo}, {hi}] on axis {axis}")
        return out

    def at(self, *idx):
        return self._buf[self._offset(self.check_index(idx))]

    def put(self, *idx, value) -> None:
        self._buf[self._offset(self.check_index(idx))] = value

    # -- whole-array helpers ----------------------------------------------

    def view(self) -> np.ndarray:
        """Shaped ndarray over the backing buffer; index 0 is the lower bound."""
        self._require_live()
        return self._buf.reshape(self.shape)

    def fill(self, value) -> None:
        self._require_live()
        self._buf.fill(value)

    def abs_max(self) -> float:
        self._require_live()
        if self._buf.size == 0:
            return 0.0
        # widen first; np.abs of the signed-int minimum overflows
        return float(np.max(np.abs(self._buf.astype(np.float64))))

    def destroy(self, bounds: Sequence[Sequence[int]]) -> None:
        if self._buf is None:
            raise ValueError("ArenaArray already destroyed")
        got = tuple((int(lo), int(hi)) for lo, hi in bounds)
        if got != self.bounds:
            raise ValueError(f"destroy bounds {got} do not match creation bounds {self.bounds}")
        self._buf = None

    def __repr__(self) -> str:
        state = "released" if self._buf is None else str(self.dtype)
        return f"{type(self).__name__}(bounds={self.bounds}, {state})"


class ArenaVector(ArenaArray):
    __slots__ = ()

    def __getitem__(self, i):
        return self._buf[self._base + i]

    def __setitem__(self, i, value) -> None:
        self._buf[self._base + i] = value


class ArenaMatrix(ArenaArray):
    __slots__ = ()

    def __getitem__(self, idx):
        i, j = idx
        return self._buf[self._base + i * self._strides[0] + j]

    def __setitem__(self, idx, value) -> None:
        i, j = idx
        self._buf[self._base + i * self._strides[0] + j] = value

    def row(self, i) -> np.ndarray:
        """Row ``i`` as a view over the backing buffer."""
        start = self._base + i * self._strides[0] + self.bounds[1][0]
        return self._buf[start:start + self.shape[1]]


class ArenaTensor3(ArenaArray):
    __slots__ = ()

    def __getitem__(self, idx):
        i, j, k = idx
        s0, s1, _ = self._strides
        return self._buf[self._base + i * s0 + j * s1 + k]

    def __setitem__(self, idx, value) -> None:
        i, j, k = idx
        s0, s1, _ = self._strides
        self._buf[self._base + i * s0 + j * s1 + k] = value


class ArenaTensor4(ArenaArray):
    __slots__ = ()

    def __getitem__(self, idx):
        i, j, k, m = idx
        s0, s1, s2, _ = self._strides
        return self._buf[self._base + i * s0 + j * s1 + k * s2 + m]

    def __setitem__(self, idx, value) -> None:
        i, j, k, m = idx
        s0, s1, s2, _ = self._strides
        self._buf[self._base + i * s0 + j * s1 + k * s2 + m] = value


_VARIANTS = {1: ArenaVector, 2: ArenaMatrix, 3: ArenaTensor3, 4: ArenaTensor4}


def create(bounds: Sequence[Sequence[int]], dtype=np.float32) -> ArenaArray:
    return ArenaArray.create(bounds, dtype)


def destroy(a: ArenaArray, bounds: Sequence[Sequence[int]]) -> None:
    a.destroy(bounds)


def abs_max(a: ArenaArray) -> float:
    return a.abs_max()


def _pairs(lims: Sequence[int]) -> Bounds:
    return tuple((int(lims[d]), int(lims[d + 1])) for d in range(0, len(lims), 2))


# ---------------------------------------------------------------------------
# Vectors v[nl..nh]
# ---------------------------------------------------------------------------


def vector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.float32, func="vector")


def ivector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.int32, func="ivector")


def usvector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.uint16, func="usvector")


def cvector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.uint8, func="cvector")


def lvector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.uint64, func="lvector")


def dvector(nl: int, nh: int) -> ArenaVector:
    return ArenaArray.create(_pairs((nl, nh)), np.float64, func="dvector")


# ---------------------------------------------------------------------------
# Matrices m[nrl..nrh][ncl..nch]
# ---------------------------------------------------------------------------


def fmatrix(nrl: int, nrh: int, ncl: int, nch: int) -> ArenaMatrix:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch)), np.float32, func="fmatrix")


def dmatrix(nrl: int, nrh: int, ncl: int, nch: int) -> ArenaMatrix:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch)), np.float64, func="dmatrix")


def imatrix(nrl: int, nrh: int, ncl: int, nch: int) -> ArenaMatrix:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch)), np.int32, func="imatrix")


def usmatrix(nrl: int, nrh: int, ncl: int, nch: int) -> ArenaMatrix:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch)), np.uint16, func="usmatrix")


# ---------------------------------------------------------------------------
# Tensors t[nrl..nrh][ncl..nch][ndl..ndh](..[nvl..nvh])
# ---------------------------------------------------------------------------


def f3tensor(nrl: int, nrh: int, ncl: int, nch: int, ndl: int, ndh: int) -> ArenaTensor3:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch, ndl, ndh)), np.float32, func="f3tensor")


def i3tensor(nrl: int, nrh: int, ncl: int, nch: int, ndl: int, ndh: int) -> ArenaTensor3:
    return ArenaArray.create(_pairs((nrl, nrh, ncl, nch, ndl, ndh)), np.int32, func="i3tensor")


def f4tensor(
    nrl: int, nrh: int, ncl: int, nch: int, ndl: int, ndh: int, nvl: int, nvh: int
) -> ArenaTensor4:
    lims = (nrl, nrh, ncl, nch, ndl, ndh, nvl, nvh)
    return ArenaArray.create(_pairs(lims), np.float32, func="f4tensor")


# ---------------------------------------------------------------------------
# Release; bounds must repeat the creation bounds
# ---------------------------------------------------------------------------


def free_vector(v: ArenaArray, nl: int, nh: int) -> None:
    v.destroy(_pairs((nl, nh)))


free_ivector = free_vector
free_usvector = free_vector
free_cvector = free_vector
free_lvector = free_vector
free_dvector = free_vector


def free_matrix(m: ArenaArray, nrl: int, nrh: int, ncl: int, nch: int) -> None:
    m.destroy(_pairs((nrl, nrh, ncl, nch)))


free_dmatrix = free_matrix
free_imatrix = free_matrix
free_usmatrix = free_matrix


def free_f3tensor(t: ArenaArray, nrl: int, nrh: int, ncl: int, nch: int, ndl: int, ndh: int) -> None:
    t.destroy(_pairs((nrl, nrh, ncl, nch, ndl, ndh)))


free_i3tensor = free_f3tensor


def free_f4tensor(
    t: ArenaArray, nrl: int, nrh: int, ncl: int, nch: int, ndl: int, ndh: int, nvl: int, nvh: int
) -> None:
    t.destroy(_pairs((nrl, nrh, ncl, nch, ndl, ndh, nvl, nvh)))
