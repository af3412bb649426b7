"""
Camera intrinsics models.

Each model owns a fixed-size parameter vector whose first four entries are
always (fx, fy, cx, cy); distortion coefficients follow. Points are handled on
the normalized image plane (x=X/Z, y=Y/Z) and pixels follow u = fx*xd + cx,
v = fy*yd + cy where (xd, yd) is the distorted normalized point.

Jacobian outputs are caller-provided buffers filled in place:
  jac:  (2,2)    d(pixel)/d(x, y) for project, d(x, y)/d(pixel) for unproject
  jacc: (2,DIM)  d(pixel)/d(params), project only
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, TextIO, Union

import numpy as np

from camkit.core.distortion import BrownDistortion, EquidistantDistortion, FovDistortion
from camkit.errors import CameraConfigError, CameraContractError

_GENERIC_NAMES = ("fx", "fy", "cx", "cy")


def _normalized(xc: np.ndarray) -> tuple[float, float]:
    v = np.asarray(xc, dtype=np.float64).reshape(-1)
    if v.size == 2:
        return float(v[0]), float(v[1])
    if v.size == 3:
        if not v[2] > 0.0:
            raise ValueError("camera-frame point must have positive depth")
        return float(v[0] / v[2]), float(v[1] / v[2])
    raise ValueError(f"expected a normalized (2,) or camera-frame (3,) point, got shape {np.shape(xc)}")


def _pixel(xp: np.ndarray) -> tuple[float, float]:
    v = np.asarray(xp, dtype=np.float64).reshape(-1)
    if v.size != 2:
        raise ValueError(f"expected a pixel (2,), got shape {np.shape(xp)}")
    return float(v[0]), float(v[1])


def _check_buffer(buf: np.ndarray, shape: tuple[int, int], name: str) -> None:
    if not isinstance(buf, np.ndarray) or buf.shape != shape:
        raise ValueError(f"{name} must be a numpy array of shape {shape}")


@dataclass(eq=False)
class _IntrinsicCamera:
    KIND: ClassVar[str]
    DIM: ClassVar[int]
    COEFFS: ClassVar[tuple[str, ...]]

    params: np.ndarray

    def __post_init__(self) -> None:
        p = np.array(self.params, dtype=np.float64).reshape(-1)
        if p.size != self.DIM:
            raise CameraConfigError(
                f"{self.KIND} camera expects {self.DIM} parameters {self.param_names()}, got {p.size}"
            )
        if not np.all(np.isfinite(p)):
            raise CameraConfigError(f"{self.KIND} camera parameters must be finite")
        self.params = p
        self._refresh()

    def _refresh(self) -> None:
        """Rebuild state derived from `params`; called after every change."""

    @classmethod
    def param_names(cls) -> tuple[str, ...]:
        return _GENERIC_NAMES + cls.COEFFS

    @property
    def kind(self) -> str:
        return self.KIND

    @property
    def fx(self) -> float:
        return float(self.params[0])

    @property
    def fy(self) -> float:
        return float(self.params[1])

    @property
    def cx(self) -> float:
        return float(self.params[2])

    @property
    def cy(self) -> float:
        return float(self.params[3])

    def update_state(self, delta: np.ndarray) -> None:
        """Add the first DIM entries of `delta` to the parameters, in place."""
        d = np.asarray(delta, dtype=np.float64).reshape(-1)
        if d.size < self.DIM:
            raise CameraContractError(f"{self.KIND} update needs {self.DIM} entries, got {d.size}")
        self.params += d[: self.DIM]
        self._refresh()

    def to_dict(self) -> dict[str, float]:
        return {name: float(v) for name, v in zip(self.param_names(), self.params)}

    def describe(self) -> str:
        lines = [f"{self.KIND} camera ({self.DIM} parameters)"]
        lines += [f"  {name:>2} = {value:.10g}" for name, value in self.to_dict().items()]
        return "\n".join(lines)

    def print(self, out: TextIO | None = None) -> None:
        if out is None:
            out = sys.stdout
        out.write(self.describe() + "\n")


class PinholeCamera(_IntrinsicCamera):
    KIND = "pinhole"
    DIM = 4
    COEFFS = ()

    def project(self, xc: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        x, y = _normalized(xc)
        fx, fy, cx, cy = self.params
        if jac is not None:
            _check_buffer(jac, (2, 2), "jac")
            jac[...] = ((fx, 0.0), (0.0, fy))
        if jacc is not None:
            _check_buffer(jacc, (2, self.DIM), "jacc")
            jacc[...] = ((x, 0.0, 1.0, 0.0), (0.0, y, 0.0, 1.0))
        return np.array([fx * x + cx, fy * y + cy], dtype=np.float64)

    def unproject(self, xp: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        if jacc is not None:
            raise CameraContractError("unproject does not provide a jacobian w.r.t. camera intrinsics")
        u, v = _pixel(xp)
        fx, fy, cx, cy = self.params
        if jac is not None:
            _check_buffer(jac, (2, 2), "jac")
            jac[...] = ((1.0 / fx, 0.0), (0.0, 1.0 / fy))
        return np.array([(u - cx) / fx, (v - cy) / fy], dtype=np.float64)


class _DistortedCamera(_IntrinsicCamera, ABC):
    def _refresh(self) -> None:
        self._dist = self.distortion()
        self._f = self.params[:2].reshape(2, 1)

    @abstractmethod
    def distortion(self):
        """Distortion function built from the coefficients in params[4:]."""

    def project(self, xc: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        x, y = _normalized(xc)
        dist = self._dist
        xd, yd = dist.distort(x, y)
        xd, yd = float(xd), float(yd)
        fx, fy, cx, cy = self.params[:4]
        f = self._f
        if jac is not None:
            _check_buffer(jac, (2, 2), "jac")
            jac[...] = f * dist.jacobian(x, y)
        if jacc is not None:
            _check_buffer(jacc, (2, self.DIM), "jacc")
            jacc[:, :4] = ((xd, 0.0, 1.0, 0.0), (0.0, yd, 0.0, 1.0))
            jacc[:, 4:] = f * dist.coeff_jacobian(x, y)
        return np.array([fx * xd + cx, fy * yd + cy], dtype=np.float64)

    def unproject(self, xp: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        if jacc is not None:
            raise CameraContractError("unproject does not provide a jacobian w.r.t. camera intrinsics")
        u, v = _pixel(xp)
        fx, fy, cx, cy = self.params[:4]
        dist = self._dist
        x, y = dist.undistort((u - cx) / fx, (v - cy) / fy)
        if jac is not None:
            _check_buffer(jac, (2, 2), "jac")
            # Inverse function theorem at the recovered point.
            jac[...] = np.linalg.inv(dist.jacobian(x, y)) / self.params[:2]
        return np.array([x, y], dtype=np.float64)


class RadialTangentialCamera(_DistortedCamera):
    KIND = "radtan"
    DIM = 9
    COEFFS = ("k1", "k2", "p1", "p2", "k3")

    def distortion(self) -> BrownDistortion:
        k1, k2, p1, p2, k3 = (float(c) for c in self.params[4:])
        return BrownDistortion(k1=k1, k2=k2, p1=p1, p2=p2, k3=k3)


class EquidistantCamera(_DistortedCamera):
    KIND = "equidistant"
    DIM = 8
    COEFFS = ("k0", "k1", "k2", "k3")

    def distortion(self) -> EquidistantDistortion:
        k0, k1, k2, k3 = (float(c) for c in self.params[4:])
        return EquidistantDistortion(k0=k0, k1=k1, k2=k2, k3=k3)


class ATANCamera(_DistortedCamera):
    KIND = "atan"
    DIM = 5
    COEFFS = ("w",)

    def distortion(self) -> FovDistortion:
        return FovDistortion(w=float(self.params[4]))


CameraModel = Union[ATANCamera, EquidistantCamera, RadialTangentialCamera, PinholeCamera]

MODEL_TYPES: dict[str, type[CameraModel]] = {
    ATANCamera.KIND: ATANCamera,
    EquidistantCamera.KIND: EquidistantCamera,
    RadialTangentialCamera.KIND: RadialTangentialCamera,
    PinholeCamera.KIND: PinholeCamera,
}
