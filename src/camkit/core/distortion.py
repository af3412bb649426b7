from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

# Radius below which the r -> 0 limits are used.
_R_EPS = 1e-10
# FOV parameter below which the model degenerates to a pinhole.
_W_EPS = 1e-8
# Largest incidence angle the equidistant inverse returns; tan() diverges at pi/2.
_THETA_MAX = 0.5 * math.pi - 1e-9


@dataclass(frozen=True)
class BrownDistortion:
    """
    Brown-Conrady distortion on normalized camera coordinates (x=X/Z, y=Y/Z).

    Parameters follow common OpenCV naming:
      radial: k1, k2, k3
      tangential: p1, p2
    """

    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0
    k3: float = 0.0

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        r2 = x * x + y * y
        r4 = r2 * r2
        r6 = r4 * r2
        radial = 1.0 + self.k1 * r2 + self.k2 * r4 + self.k3 * r6
        x2 = x * x
        y2 = y * y
        xy = x * y
        x_tan = 2.0 * self.p1 * xy + self.p2 * (r2 + 2.0 * x2)
        y_tan = self.p1 * (r2 + 2.0 * y2) + 2.0 * self.p2 * xy
        xd = x * radial + x_tan
        yd = y * radial + y_tan
        return xd, yd

    def jacobian(self, x: float, y: float) -> np.ndarray:
        """d(xd, yd)/d(x, y) at a single point, shape (2,2)."""
        x2 = x * x
        y2 = y * y
        xy = x * y
        r2 = x2 + y2
        radial = 1.0 + r2 * (self.k1 + r2 * (self.k2 + r2 * self.k3))
        # 2 * d(radial)/d(r2)
        dradial = 2.0 * (self.k1 + r2 * (2.0 * self.k2 + 3.0 * self.k3 * r2))
        off = dradial * xy + 2.0 * self.p1 * x + 2.0 * self.p2 * y
        return np.array(
            [
                [radial + dradial * x2 + 2.0 * self.p1 * y + 6.0 * self.p2 * x, off],
                [off, radial + dradial * y2 + 6.0 * self.p1 * y + 2.0 * self.p2 * x],
            ],
            dtype=np.float64,
        )

    def coeff_jacobian(self, x: float, y: float) -> np.ndarray:
        """d(xd, yd)/d(k1, k2, p1, p2, k3), shape (2,5)."""
        xy = x * y
        r2 = x * x + y * y
        r4 = r2 * r2
        r6 = r4 * r2
        return np.array(
            [
                [x * r2, x * r4, 2.0 * xy, r2 + 2.0 * x * x, x * r6],
                [y * r2, y * r4, r2 + 2.0 * y * y, 2.0 * xy, y * r6],
            ],
            dtype=np.float64,
        )

    def undistort(self, xd: float, yd: float, iterations: int = 20, tol: float = 1e-12) -> tuple[float, float]:
        """
        Newton inverse of distort() for a single point.

        Stops early once the step falls below `tol`; if the Jacobian turns
        singular the current estimate is returned.
        """
        xd = float(xd)
        yd = float(yd)
        x, y = xd, yd
        for _ in range(int(iterations)):
            ex, ey = self.distort(x, y)
            try:
                step = np.linalg.solve(self.jacobian(x, y), np.array([float(ex) - xd, float(ey) - yd]))
            except np.linalg.LinAlgError:
                break
            x -= float(step[0])
            y -= float(step[1])
            if abs(step[0]) + abs(step[1]) < tol:
                break
        return x, y


@dataclass(frozen=True)
class EquidistantDistortion:
    """
    Kannala-Brandt equidistant fisheye distortion (OpenCV fisheye convention):

      theta = atan(r), theta_d = theta * (1 + k0 theta^2 + k1 theta^4 + k2 theta^6 + k3 theta^8)
      (xd, yd) = (x, y) * theta_d / r
    """

    k0: float = 0.0
    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0

    def theta_d(self, theta: float) -> float:
        t2 = theta * theta
        return theta * (1.0 + t2 * (self.k0 + t2 * (self.k1 + t2 * (self.k2 + t2 * self.k3))))

    def dtheta_d(self, theta: float) -> float:
        t2 = theta * theta
        return 1.0 + t2 * (3.0 * self.k0 + t2 * (5.0 * self.k1 + t2 * (7.0 * self.k2 + t2 * 9.0 * self.k3)))

    def _scale(self, r: np.ndarray) -> np.ndarray:
        theta = np.arctan(r)
        t2 = theta * theta
        thd = theta * (1.0 + t2 * (self.k0 + t2 * (self.k1 + t2 * (self.k2 + t2 * self.k3))))
        return np.where(r > _R_EPS, thd / np.maximum(r, _R_EPS), 1.0)

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        s = self._scale(np.hypot(x, y))
        return x * s, y * s

    def jacobian(self, x: float, y: float) -> np.ndarray:
        r = math.hypot(x, y)
        if r < _R_EPS:
            return np.eye(2, dtype=np.float64)
        theta = math.atan(r)
        scale = self.theta_d(theta) / r
        dthd_dr = self.dtheta_d(theta) / (1.0 + r * r)
        c = (dthd_dr - scale) / (r * r)
        return np.array([[scale + c * x * x, c * x * y], [c * x * y, scale + c * y * y]], dtype=np.float64)

    def coeff_jacobian(self, x: float, y: float) -> np.ndarray:
        """d(xd, yd)/d(k0, k1, k2, k3), shape (2,4)."""
        r = math.hypot(x, y)
        theta = math.atan(r)
        ratio = theta / r if r > _R_EPS else 1.0
        t2 = theta * theta
        powers = np.array([t2, t2**2, t2**3, t2**4], dtype=np.float64) * ratio
        return np.stack([x * powers, y * powers], axis=0)

    def undistort(self, xd: float, yd: float, iterations: int = 20, tol: float = 1e-12) -> tuple[float, float]:
        """
        Newton solve of theta_d(theta) = |(xd, yd)| for the incidence angle.

        theta_d itself may exceed pi/2 for positive k0; only theta is kept in
        [0, pi/2).
        """
        xd = float(xd)
        yd = float(yd)
        thd = math.hypot(xd, yd)
        if thd < _R_EPS:
            return xd, yd
        theta = min(thd, _THETA_MAX)
        for _ in range(int(iterations)):
            d = self.dtheta_d(theta)
            if d == 0.0:
                break
            step = (self.theta_d(theta) - thd) / d
            theta = min(max(theta - step, 0.0), _THETA_MAX)
            if abs(step) < tol:
                break
        s = math.tan(theta) / math.hypot(xd, yd)
        return xd * s, yd * s


@dataclass(frozen=True)
class FovDistortion:
    """
    Field-of-view ("atan") distortion of Devernay and Faugeras:

      rd = atan(2 r tan(w/2)) / w
    """

    w: float

    def _k(self) -> float:
        return 2.0 * math.tan(0.5 * self.w)

    def _scale(self, r: np.ndarray) -> np.ndarray:
        if abs(self.w) < _W_EPS:
            return np.ones_like(r)
        k = self._k()
        return np.where(r > _R_EPS, np.arctan(k * r) / (self.w * np.maximum(r, _R_EPS)), k / self.w)

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        s = self._scale(np.hypot(x, y))
        return x * s, y * s

    def jacobian(self, x: float, y: float) -> np.ndarray:
        if abs(self.w) < _W_EPS:
            return np.eye(2, dtype=np.float64)
        k = self._k()
        r = math.hypot(x, y)
        if r < _R_EPS:
            return np.eye(2, dtype=np.float64) * (k / self.w)
        kr = k * r
        scale = math.atan(kr) / (self.w * r)
        dscale_dr = (kr / (1.0 + kr * kr) - math.atan(kr)) / (self.w * r * r)
        c = dscale_dr / r
        return np.array([[scale + c * x * x, c * x * y], [c * x * y, scale + c * y * y]], dtype=np.float64)

    def coeff_jacobian(self, x: float, y: float) -> np.ndarray:
        """d(xd, yd)/dw, shape (2,1)."""
        if abs(self.w) < _W_EPS:
            return np.zeros((2, 1), dtype=np.float64)
        k = self._k()
        dk = 1.0 + 0.25 * k * k
        r = math.hypot(x, y)
        if r < _R_EPS:
            dscale = dk / self.w - k / (self.w * self.w)
        else:
            kr = k * r
            dscale = dk / (self.w * (1.0 + kr * kr)) - math.atan(kr) / (self.w * self.w * r)
        return np.array([[x * dscale], [y * dscale]], dtype=np.float64)

    def undistort(self, xd: float, yd: float) -> tuple[float, float]:
        xd = float(xd)
        yd = float(yd)
        if abs(self.w) < _W_EPS:
            return xd, yd
        k = self._k()
        rd = math.hypot(xd, yd)
        if rd < _R_EPS:
            s = self.w / k
        else:
            s = math.tan(rd * self.w) / (k * rd)
        return xd * s, yd * s
