from __future__ import annotations

import argparse
import os
from pathlib import Path
import shutil
import subprocess
import sys

MODES = ("velocity", "pressure", "div_curl", "all")


def _mpirun_path(explicit: str) -> str | None:
    for cand in (explicit, os.environ.get("MPIRUN", "").strip()):
        if cand:
            return cand
    for name in ("mpiexec.hydra", "mpiexec", "mpirun"):
        found = shutil.which(name)
        if found:
            return found
    return None


def _check_cmd(mpirun: str, n: int, cfg: Path, mode: str) -> list[str]:
    cmd = [mpirun, "-n", str(int(n)), sys.executable, "-m", "fdseis.main", "check", str(cfg)]
    if mode:
        cmd += ["--mode", mode]
    return cmd


def main() -> int:
    p = argparse.ArgumentParser(description="Distributed-vs-serial seismogram check under mpirun")
    p.add_argument("--n", type=int, default=2, help="Process count; must match the config's process grid")
    p.add_argument("--config", default="examples/grid_2x1x1.yaml")
    p.add_argument(
        "--mode",
        default="",
        help=f"Comma-separated seismo modes to check one launch each ({'|'.join(MODES)}); "
        "empty uses the config's mode",
    )
    p.add_argument("--mpirun", default="", help="Path to mpirun/mpiexec")
    p.add_argument("--timeout", type=int, default=60, help="Seconds per launch")
    args = p.parse_args()

    mpirun = _mpirun_path(args.mpirun)
    if mpirun is None:
        print("[mpi-smoke] no mpirun/mpiexec on PATH (set MPIRUN or --mpirun)", file=sys.stderr)
        return 2

    root = Path(__file__).resolve().parents[1]
    cfg = Path(args.config)
    cfg = cfg if cfg.is_absolute() else root / cfg
    if not cfg.is_file():
        print(f"[mpi-smoke] config not found: {cfg}", file=sys.stderr)
        return 2

    modes = [m.strip() for m in args.mode.split(",") if m.strip()] or [""]
    bad = [m for m in modes if m and m not in MODES]
    if bad:
        print(f"[mpi-smoke] unknown mode(s): {bad}", file=sys.stderr)
        return 2

    env = dict(os.environ)
    env.setdefault("PYTHONUNBUFFERED", "1")
    for mode in modes:
        cmd = _check_cmd(mpirun, args.n, cfg, mode)
        print("[mpi-smoke] " + " ".join(cmd), flush=True)
        try:
            res = subprocess.run(cmd, cwd=str(root), env=env, timeout=int(args.timeout))
        except subprocess.TimeoutExpired:
            print(f"[mpi-smoke] n={args.n} mode={mode or 'config'} timed out", file=sys.stderr)
            return 3
        if res.returncode != 0:
            print(f"[mpi-smoke] n={args.n} mode={mode or 'config'} rc={res.returncode}", file=sys.stderr)
            return int(res.returncode)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
