from __future__ import annotations

import sys
import warnings
from typing import Callable, TextIO, TypeVar

T = TypeVar("T")


class FatalError(RuntimeError):
    """Unrecoverable condition; every participating process must stop.

    Library code raises this instead of terminating the interpreter.  The
    top-level driver (:func:`run_guarded`) turns it into an abort of the
    whole communicator so no peer is left blocked in a collective.
    """


class AllocationError(FatalError):
    def __init__(self, func: str, nbytes: int, detail: str = ""):
        self.func = str(func)
        self.nbytes = int(nbytes)
        msg = f"allocation failure in function {self.func}() ({self.nbytes} bytes)"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


def report_fatal(exc: BaseException, *, rank: int, stream: TextIO | None = None) -> None:
    out = sys.stderr if stream is None else stream
    sys.stdout.flush()
    out.write(f"Message from PE {int(rank)}\n")
    out.write("R U N - T I M E  E R R O R:\n")
    out.write(f"{exc}\n")
    out.write("...now exiting to system.\n")
    out.flush()


def abort_all(comm, code: int = 1) -> None:
    """Abort every process of ``comm``; without a communicator exit this one."""
    if comm is None:
        raise SystemExit(int(code))
    comm.Abort(int(code))
    # Abort does not return on a real communicator
    raise SystemExit(int(code))


def run_guarded(fn: Callable[[], T], *, comm, rank: int) -> T:
    try:
        return fn()
    except FatalError as exc:
        report_fatal(exc, rank=rank)
        abort_all(comm, 1)
        raise SystemExit(1) from exc


def warning(text: str) -> None:
    warnings.warn(str(text), RuntimeWarning, stacklevel=2)
