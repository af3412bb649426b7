"""
Refine camera intrinsics with Gauss-Newton on synthetic observations.

Shows the optimizer side of the API: residuals from `project`, the (2,dim)
intrinsics jacobian, and one `update_state` per iteration.

  python docs/examples/intrinsics_refinement_demo.py
"""

from __future__ import annotations

import logging

import numpy as np

from camkit import CameraManager


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    truth = CameraManager(
        {
            "model": "radtan",
            "rows": 480,
            "cols": 752,
            "fx": 458.654,
            "fy": 457.296,
            "cx": 367.215,
            "cy": 248.375,
            "k1": -0.28340811,
            "k2": 0.07395907,
            "p1": 0.00019359,
            "p2": 1.76187114e-05,
        }
    )
    rng = np.random.default_rng(0)
    xc = rng.uniform(-0.6, 0.6, size=(300, 2))
    uv = np.array([truth.project(p) for p in xc])

    guess = truth.to_config()
    cam = CameraManager.create(
        {
            "model": guess.model,
            "rows": guess.rows,
            "cols": guess.cols,
            "fx": 430.0,
            "fy": 430.0,
            "cx": 376.0,
            "cy": 240.0,
        }
    )

    jacc = np.zeros((2, cam.dim))
    for it in range(10):
        J = np.zeros((2 * len(xc), cam.dim))
        r = np.zeros(2 * len(xc))
        for i, p in enumerate(xc):
            r[2 * i : 2 * i + 2] = cam.project(p, jacc=jacc) - uv[i]
            J[2 * i : 2 * i + 2] = jacc
        step, *_ = np.linalg.lstsq(J, -r, rcond=None)
        cam.update_state(step)
        print(f"iter {it}: rms={np.sqrt(np.mean(r * r)):.3e} px, fl={cam.focal_length:.4f}")

    CameraManager.instance().print()


if __name__ == "__main__":
    main()
