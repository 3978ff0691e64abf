from __future__ import annotations

import itertools

import pytest

from fdseis.partition import GridPartition, rank_coord, rank_of


def _all_partitions(global_shape, procs):
    n = procs[0] * procs[1] * procs[2]
    return [GridPartition.for_rank(r, global_shape, procs) for r in range(n)]


# ---------------------------------------------------------------------------
# Ownership: totality, disjointness, inversion
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "global_shape,procs",
    [
        ((4, 4, 4), (1, 1, 1)),
        ((6, 4, 2), (2, 1, 1)),
        ((6, 4, 3), (3, 2, 1)),
        ((4, 6, 8), (2, 3, 4)),
    ],
)
def test_every_point_has_exactly_one_owner(global_shape, procs):
    parts = _all_partitions(global_shape, procs)
    gx, gy, gz = global_shape
    for c in itertools.product(range(1, gx + 1), range(1, gy + 1), range(1, gz + 1)):
        owners = []
        for p in parts:
            owned, local = p.owns(*c)
            if owned:
                owners.append(p)
                nx, ny, nz = p.local_shape
                assert 1 <= local[0] <= nx and 1 <= local[1] <= ny and 1 <= local[2] <= nz
                assert p.to_global(*local) == c
                px, py, pz = p.pos
                assert (local[0] + px * nx, local[1] + py * ny, local[2] + pz * nz) == c
        assert len(owners) == 1, f"{c} owned by {len(owners)} processes"
        assert owners[0].rank == parts[0].owner_of(*c)


def test_local_coordinates_are_one_based():
    p = GridPartition(global_shape=(8, 8, 8), procs=(2, 2, 2), pos=(1, 0, 1))
    assert p.owns(5, 1, 5) == (True, (1, 1, 1))
    assert p.owns(8, 4, 8) == (True, (4, 4, 4))
    owned, _ = p.owns(4, 1, 5)
    assert owned is False


def test_owned_global_ranges_and_local_bounds():
    p = GridPartition(global_shape=(12, 6, 4), procs=(3, 2, 1), pos=(2, 1, 0))
    assert p.local_shape == (4, 3, 4)
    assert p.owned_global_ranges() == ((9, 12), (4, 6), (1, 4))
    assert p.local_bounds(0) == ((1, 4), (1, 3), (1, 4))
    assert p.local_bounds(2) == ((-1, 6), (-1, 5), (-1, 6))


def test_in_domain():
    p = GridPartition(global_shape=(4, 4, 4), procs=(1, 1, 1), pos=(0, 0, 0))
    assert p.in_domain(1, 4, 2)
    assert not p.in_domain(0, 1, 1)
    assert not p.in_domain(1, 1, 5)


# ---------------------------------------------------------------------------
# Rank <-> rank-coordinate
# ---------------------------------------------------------------------------


def test_rank_coord_roundtrip():
    procs = (3, 2, 4)
    seen = set()
    for r in range(24):
        pos = rank_coord(r, procs)
        assert rank_of(pos, procs) == r
        seen.add(pos)
    assert len(seen) == 24
    assert rank_coord(1, procs) == (1, 0, 0)
    assert rank_coord(3, procs) == (0, 1, 0)
    assert rank_coord(6, procs) == (0, 0, 1)


def test_rank_coord_out_of_range():
    with pytest.raises(ValueError, match="outside process grid"):
        rank_coord(8, (2, 2, 2))


# ---------------------------------------------------------------------------
# Construction-time validation
# ---------------------------------------------------------------------------


def test_indivisible_extent_rejected():
    with pytest.raises(ValueError, match="not divisible"):
        GridPartition(global_shape=(10, 4, 4), procs=(3, 1, 1), pos=(0, 0, 0))


def test_position_outside_process_grid_rejected():
    with pytest.raises(ValueError, match="outside process grid"):
        GridPartition(global_shape=(4, 4, 4), procs=(2, 2, 2), pos=(0, 2, 0))


def test_non_positive_extent_rejected():
    with pytest.raises(ValueError, match="must be positive"):
        GridPartition(global_shape=(0, 4, 4), procs=(1, 1, 1), pos=(0, 0, 0))
    with pytest.raises(ValueError, match="must be positive"):
        GridPartition(global_shape=(4, 4, 4), procs=(1, 0, 1), pos=(0, 0, 0))
