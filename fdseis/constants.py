"""Named numeric constants for fdseis.

Categories
----------
SEISMO_DTYPE
    Element type of local and global seismogram matrices.  Wavefield
    arrays use the same single-precision type so sampling never widens.

STENCIL_REACH
    Number of grid points the receiver derivative stencils read beyond the
    receiver coordinate in each direction.  The halo around an owned block
    must be at least this deep.

DEFAULT_HALO
    Halo depth used when a config does not set ``grid.halo``.

CHECK_RTOL
    Relative tolerance of the analytic-field consistency check.  Collected
    values are float32 sums of exactly one non-zero contributor, so the
    distributed and serial results should agree to float32 rounding.
"""

from __future__ import annotations

import numpy as np

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
SEISMO_DTYPE = np.float32

# ---------------------------------------------------------------------------
# Stencil / halo geometry
# ---------------------------------------------------------------------------
STENCIL_REACH: int = 1
DEFAULT_HALO: int = 2

# ---------------------------------------------------------------------------
# Consistency check tolerance
# ---------------------------------------------------------------------------
CHECK_RTOL: float = 1e-5
