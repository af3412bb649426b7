from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from camkit.config import load_camera_config
from camkit.errors import CameraError
from camkit.manager import CameraManager


def _fmt(v: np.ndarray) -> str:
    return " ".join(f"{float(x):.10g}" for x in np.asarray(v).reshape(-1))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="camkit")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    desc = sub.add_parser("describe", help="Print the camera model and its intrinsics.")
    desc.add_argument("config", type=Path)

    proj = sub.add_parser("project", help="Project a camera-frame point (x y or X Y Z) to pixels.")
    proj.add_argument("config", type=Path)
    proj.add_argument("point", type=float, nargs="+")
    proj.add_argument("--jacobians", action="store_true", help="Also print d(pixel)/d(point) and d(pixel)/d(intrinsics).")

    unproj = sub.add_parser("unproject", help="Unproject a pixel to normalized camera coordinates.")
    unproj.add_argument("config", type=Path)
    unproj.add_argument("pixel", type=float, nargs=2)
    unproj.add_argument("--jacobians", action="store_true", help="Also print d(point)/d(pixel).")

    chk = sub.add_parser(
        "check-jacobians",
        help="Compare analytic jacobians against central finite differences on random points.",
    )
    chk.add_argument("config", type=Path)
    chk.add_argument("--samples", type=int, default=100)
    chk.add_argument("--radius", type=float, default=0.5, help="Half-width of the normalized sampling square.")
    chk.add_argument("--seed", type=int, default=0)
    chk.add_argument("--tol", type=float, default=1e-5, help="Maximum accepted relative error.")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        cam = CameraManager(load_camera_config(args.config))
    except (CameraError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.cmd == "describe":
        cam.print(sys.stdout)
        print(f"resolution: {cam.cols}x{cam.rows}")
        print(f"focal length: {cam.focal_length:.10g}")
        return 0

    if args.cmd == "project":
        if len(args.point) not in (2, 3):
            parser.error("point must have 2 (x y) or 3 (X Y Z) coordinates")
        jac = np.zeros((2, 2))
        jacc = np.zeros((2, cam.dim))
        try:
            xp = cam.project(np.asarray(args.point), jac, jacc)
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2
        print(_fmt(xp))
        if args.jacobians:
            print("d(pixel)/d(point):")
            print(jac)
            print("d(pixel)/d(intrinsics):")
            print(jacc)
        return 0

    if args.cmd == "unproject":
        jac = np.zeros((2, 2))
        xc = cam.unproject(np.asarray(args.pixel), jac)
        print(_fmt(xc))
        if args.jacobians:
            print("d(point)/d(pixel):")
            print(jac)
        return 0

    if args.cmd == "check-jacobians":
        rng = np.random.default_rng(args.seed)
        points = rng.uniform(-args.radius, args.radius, size=(args.samples, 2))
        errs = cam.check_jacobians(points)
        worst = max(errs.values())
        for name, err in errs.items():
            print(f"{name}: {err:.3e}")
        if worst > args.tol:
            print(f"FAILED: max relative error {worst:.3e} > {args.tol:.1e}")
            return 1
        print("OK")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
