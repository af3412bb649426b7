"""Finite-difference checks of the analytic camera Jacobians."""

from __future__ import annotations

from typing import Callable

import numpy as np

from camkit.core.models import CameraModel


def numeric_jacobian(f: Callable[[np.ndarray], np.ndarray], x: np.ndarray, eps_scale: float = 1e-6) -> np.ndarray:
    """
    Central finite-difference Jacobian of a vector function.

    Step for coordinate j is eps_scale * max(1, |x_j|).
    """
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    f0 = np.asarray(f(x), dtype=np.float64).reshape(-1)
    J = np.zeros((f0.size, x.size), dtype=np.float64)
    for j in range(x.size):
        step = eps_scale * max(1.0, abs(float(x[j])))
        dx = np.zeros_like(x)
        dx[j] = step
        fp = np.asarray(f(x + dx), dtype=np.float64).reshape(-1)
        fm = np.asarray(f(x - dx), dtype=np.float64).reshape(-1)
        J[:, j] = (fp - fm) / (2.0 * step)
    return J


def relative_error(analytic: np.ndarray, numeric: np.ndarray) -> float:
    """Largest entry-wise deviation divided by the largest analytic entry."""
    analytic = np.asarray(analytic, dtype=np.float64)
    scale = max(float(np.max(np.abs(analytic))), 1e-12)
    return float(np.max(np.abs(analytic - np.asarray(numeric, dtype=np.float64)))) / scale


def check_jacobians(model: CameraModel, points: np.ndarray, eps_scale: float = 1e-6) -> dict[str, float]:
    """
    Compare analytic and finite-difference Jacobians of `model` at normalized
    points (N,2). Returns the worst relative error per Jacobian kind.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    cls = type(model)
    params = model.params.copy()

    jac = np.zeros((2, 2), dtype=np.float64)
    jacc = np.zeros((2, model.DIM), dtype=np.float64)
    jac_inv = np.zeros((2, 2), dtype=np.float64)

    errs = {"project_point": 0.0, "project_intrinsics": 0.0, "unproject_point": 0.0}
    for xc in points:
        xp = model.project(xc, jac, jacc)
        num = numeric_jacobian(model.project, xc, eps_scale)
        errs["project_point"] = max(errs["project_point"], relative_error(jac, num))

        num_c = numeric_jacobian(lambda p: cls(p).project(xc), params, eps_scale)
        errs["project_intrinsics"] = max(errs["project_intrinsics"], relative_error(jacc, num_c))

        model.unproject(xp, jac_inv)
        num_inv = numeric_jacobian(model.unproject, xp, eps_scale)
        errs["unproject_point"] = max(errs["unproject_point"], relative_error(jac_inv, num_inv))
    return errs
