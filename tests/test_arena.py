from __future__ import annotations

import itertools

import numpy as np
import pytest

from fdseis import arena
from fdseis.arena import (
    ArenaArray,
    ArenaMatrix,
    ArenaTensor3,
    ArenaTensor4,
    ArenaVector,
    cvector,
    dmatrix,
    dvector,
    f3tensor,
    f4tensor,
    fmatrix,
    free_f3tensor,
    free_f4tensor,
    free_matrix,
    free_vector,
    i3tensor,
    imatrix,
    ivector,
    lvector,
    usmatrix,
    usvector,
    vector,
)
from fdseis.fatal import AllocationError, FatalError


def _coords(a: ArenaArray):
    return itertools.product(*[range(lo, hi + 1) for lo, hi in a.bounds])


# ---------------------------------------------------------------------------
# Creation: zero fill, dtype, size
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "factory,lims,dtype",
    [
        (vector, (1, 7), np.float32),
        (ivector, (-3, 3), np.int32),
        (usvector, (0, 4), np.uint16),
        (cvector, (5, 9), np.uint8),
        (lvector, (1, 1), np.uint64),
        (dvector, (-1, 2), np.float64),
        (fmatrix, (1, 3, 1, 4), np.float32),
        (dmatrix, (0, 2, -2, 2), np.float64),
        (imatrix, (-1, 1, 1, 3), np.int32),
        (usmatrix, (1, 2, 1, 2), np.uint16),
        (f3tensor, (-1, 2, 0, 3, 1, 2), np.float32),
        (i3tensor, (1, 2, 1, 2, 1, 2), np.int32),
        (f4tensor, (1, 2, 0, 1, -1, 1, 1, 3), np.float32),
    ],
)
def test_create_zero_filled_over_all_coordinates(factory, lims, dtype):
    a = factory(*lims)
    assert a.dtype == np.dtype(dtype)
    seen = 0
    for c in _coords(a):
        assert a.at(*c) == 0
        seen += 1
    assert seen == a.size
    assert a.buffer.size == int(np.prod(a.shape))


def test_create_picks_variant_by_dimensionality():
    assert isinstance(ArenaArray.create(((1, 2),)), ArenaVector)
    assert isinstance(ArenaArray.create(((1, 2), (1, 2))), ArenaMatrix)
    assert isinstance(ArenaArray.create(((1, 2),) * 3), ArenaTensor3)
    assert isinstance(ArenaArray.create(((1, 2),) * 4), ArenaTensor4)


def test_create_rejects_bad_bounds():
    with pytest.raises(ValueError, match="upper bound"):
        vector(3, 1)
    with pytest.raises(ValueError, match="dimensions"):
        ArenaArray.create(((1, 2),) * 5)
    with pytest.raises(ValueError, match="dimensions"):
        ArenaArray.create(())


def test_empty_axis_is_allowed():
    m = fmatrix(1, 0, 1, 5)
    assert m.shape == (0, 5)
    assert m.size == 0
    assert m.abs_max() == 0.0


def test_allocation_failure_is_fatal(monkeypatch):
    def _boom(*args, **kwargs):
        raise MemoryError("out of memory")

    monkeypatch.setattr(arena.np, "zeros", _boom)
    with pytest.raises(AllocationError, match=r"f3tensor\(\)") as ei:
        f3tensor(1, 4, 1, 4, 1, 4)
    assert isinstance(ei.value, FatalError)
    assert ei.value.nbytes == 64 * 4


# ---------------------------------------------------------------------------
# Addressing
# ---------------------------------------------------------------------------


def test_lower_bound_addresses_first_element():
    v = vector(1, 5)
    v[1] = 11.0
    v[5] = 55.0
    assert v.buffer[0] == 11.0
    assert v.buffer[-1] == 55.0

    w = ivector(-2, 2)
    w[-2] = 7
    assert w.buffer[0] == 7


def test_row_major_layout_matches_view():
    t = f3tensor(-1, 1, 0, 2, 1, 4)
    for n, c in enumerate(_coords(t)):
        t[c] = float(n)
    # last axis fastest: buffer order equals coordinate enumeration order
    assert np.array_equal(t.buffer, np.arange(t.size, dtype=np.float32))
    view = t.view()
    assert view.shape == (3, 3, 4)
    assert view[0, 0, 0] == t[-1, 0, 1]
    assert view[2, 1, 3] == t[1, 1, 4]


def test_unchecked_and_checked_access_agree():
    q = f4tensor(0, 1, 1, 2, -1, 0, 3, 4)
    q[1, 2, -1, 4] = 2.5
    assert q.at(1, 2, -1, 4) == pytest.approx(2.5)
    q.put(0, 1, 0, 3, value=-1.5)
    assert q[0, 1, 0, 3] == pytest.approx(-1.5)
    assert float(np.count_nonzero(q.buffer)) == 2


def test_view_shares_memory():
    m = dmatrix(1, 2, 1, 3)
    m.view()[1, 2] = 9.0
    assert m[2, 3] == 9.0
    assert np.shares_memory(m.view(), m.buffer)


def test_matrix_row_is_a_view():
    m = fmatrix(1, 3, 1, 4)
    m.row(2)[:] = [1.0, 2.0, 3.0, 4.0]
    assert [float(m[2, j]) for j in range(1, 5)] == [1.0, 2.0, 3.0, 4.0]
    assert m.at(1, 1) == 0.0
    assert m.at(3, 4) == 0.0


def test_vectorised_gather_scatter():
    t = i3tensor(0, 3, 0, 3, 0, 3)
    i = np.array([0, 1, 3])
    j = np.array([1, 2, 3])
    k = np.array([2, 0, 3])
    t.scatter(np.array([5, 6, 7]), i, j, k)
    assert t[0, 1, 2] == 5
    assert t[1, 2, 0] == 6
    assert t[3, 3, 3] == 7
    assert t.gather(i, j, k).tolist() == [5, 6, 7]


def test_abs_max():
    m = fmatrix(1, 2, 1, 2)
    m[1, 2] = 3.0
    m[2, 1] = -4.5
    assert m.abs_max() == pytest.approx(4.5)
    assert arena.abs_max(m) == pytest.approx(4.5)


def test_abs_max_signed_int_minimum():
    m = imatrix(1, 1, 1, 2)
    m[1, 1] = np.iinfo(np.int32).min
    m[1, 2] = 7
    assert m.abs_max() == 2147483648.0
    assert fmatrix(1, 0, 1, 3).abs_max() == 0.0


# ---------------------------------------------------------------------------
# Checked accessors
# ---------------------------------------------------------------------------


def test_checked_access_rejects_out_of_bounds():
    t = f3tensor(0, 2, 0, 2, 0, 2)
    with pytest.raises(IndexError, match="axis 0"):
        t.at(-1, 0, 0)
    with pytest.raises(IndexError, match="axis 2"):
        t.put(0, 0, 3, value=1.0)


def test_checked_access_rejects_wrong_arity():
    m = fmatrix(1, 2, 1, 2)
    with pytest.raises(IndexError, match="expected 2 indices"):
        m.at(1)


# ---------------------------------------------------------------------------
# Destruction
# ---------------------------------------------------------------------------


def test_destroy_with_matching_bounds_releases():
    m = fmatrix(1, 3, 1, 4)
    free_matrix(m, 1, 3, 1, 4)
    assert m.released
    with pytest.raises(ValueError, match="after destroy"):
        m.view()


def test_destroy_mismatched_bounds_raises():
    v = vector(1, 10)
    with pytest.raises(ValueError, match="do not match"):
        free_vector(v, 0, 10)
    assert not v.released

    t = f3tensor(-1, 4, -1, 4, -1, 4)
    with pytest.raises(ValueError, match="do not match"):
        free_f3tensor(t, 1, 4, 1, 4, 1, 4)
    free_f3tensor(t, -1, 4, -1, 4, -1, 4)


def test_destroy_twice_raises():
    q = f4tensor(1, 1, 1, 1, 1, 1, 1, 2)
    free_f4tensor(q, 1, 1, 1, 1, 1, 1, 1, 2)
    with pytest.raises(ValueError, match="already destroyed"):
        free_f4tensor(q, 1, 1, 1, 1, 1, 1, 1, 2)


def test_module_create_and_destroy():
    a = arena.create(((0, 2), (-1, 1)), np.float64)
    assert isinstance(a, ArenaMatrix)
    assert a.dtype == np.float64
    assert a.bounds == ((0, 2), (-1, 1))
    a[2, -1] = 1.5
    assert a.at(2, -1) == 1.5
    with pytest.raises(ValueError, match="do not match"):
        arena.destroy(a, ((0, 2), (0, 1)))
    arena.destroy(a, ((0, 2), (-1, 1)))
    assert a.released
    with pytest.raises(ValueError, match="already destroyed"):
        arena.destroy(a, ((0, 2), (-1, 1)))
