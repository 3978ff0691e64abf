from __future__ import annotations

import argparse

from .config import load_config
from .context import finalize_context, init_context
from .driver import check_against_serial, setup_model
from .fatal import run_guarded
from .sampler import SeismoMode


def _cmd_run(args) -> None:
    cfg = load_config(args.config)
    ctx = init_context(cfg, use_mpi=not args.serial)

    def body():
        s = setup_model(ctx, cfg)
        print(
            f"[run rank={ctx.rank}] owned_points={int(s['points'])} receivers={int(s['ntr_loc'])} "
            f"max|pi|={s['pi_max']:.6e} max|u|={s['u_max']:.6e}",
            flush=True,
        )

    run_guarded(body, comm=ctx.comm, rank=ctx.rank)
    finalize_context(ctx)


def _cmd_check(args) -> None:
    cfg = load_config(args.config)
    ctx = init_context(cfg, use_mpi=not args.serial)
    mode = SeismoMode.parse(args.mode) if args.mode else None

    report = run_guarded(lambda: check_against_serial(ctx, cfg, mode=mode), comm=ctx.comm, rank=ctx.rank)
    ok = True
    if report is not None:
        ok = report.ok
        print(
            f"[check] size={ctx.size} quantities={','.join(report.quantities)} "
            f"ok={report.ok} max|err|={report.max_abs_err:.3e}",
            flush=True,
        )
    if ctx.comm is not None:
        ok = bool(ctx.comm.bcast(ok, root=0))
    finalize_context(ctx)
    raise SystemExit(0 if ok else 2)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fdseis")
    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser("run")
    pr.add_argument("config", help="YAML config (grid, seismo, model)")
    pr.add_argument("--serial", action="store_true", help="Ignore MPI and run one process")
    pr.set_defaults(func=_cmd_run)

    pc = sub.add_parser("check")
    pc.add_argument("config", help="YAML config (grid, seismo, model)")
    pc.add_argument(
        "--mode",
        choices=["velocity", "pressure", "div_curl", "all"],
        default="",
        help="Seismo mode override",
    )
    pc.add_argument("--serial", action="store_true", help="Ignore MPI and run one process")
    pc.set_defaults(func=_cmd_check)

    return p


def main() -> None:
    p = _build_parser()
    args = p.parse_args()
    func = getattr(args, "func", None)
    if func is None:
        raise SystemExit(f"unsupported cmd: {getattr(args, 'cmd', None)}")
    func(args)


if __name__ == "__main__":
    main()
