"""
Camera manager: owns the single active camera model of a process.

The manager keeps a cache of the generic intrinsics (fx, fy, cx, cy) and the
mean focal length sqrt(0.5*(fx^2 + fy^2)). The cache is only ever refreshed by
re-reading the model's first four parameters, so the two cannot drift apart.

There is no internal locking. `project`/`unproject` may run concurrently as
long as no `update_state` or `create` runs at the same time.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, TextIO

import numpy as np

from camkit.config import CameraConfig, parse_camera_config
from camkit.core.models import (
    ATANCamera,
    CameraModel,
    EquidistantCamera,
    MODEL_TYPES,
    PinholeCamera,
    RadialTangentialCamera,
)
from camkit.core.numdiff import check_jacobians
from camkit.errors import CameraConfigError, CameraContractError, CameraNotInitializedError

logger = logging.getLogger(__name__)

_MODEL_CLASSES = (ATANCamera, EquidistantCamera, RadialTangentialCamera, PinholeCamera)


def build_camera_model(config: CameraConfig) -> CameraModel:
    cls = MODEL_TYPES.get(config.model)
    if cls is None:
        raise CameraConfigError(f"unknown camera model: {config.model!r}")
    return cls(config.params())


class CameraManager:
    _instance: CameraManager | None = None

    def __init__(self, config: CameraConfig | Mapping[str, Any]) -> None:
        if not isinstance(config, CameraConfig):
            config = parse_camera_config(config)
        self._rows = int(config.rows)
        self._cols = int(config.cols)
        self._model: CameraModel = build_camera_model(config)
        self._dim = self._model.DIM
        self._sync_intrinsics()

    def __copy__(self):
        raise TypeError("CameraManager cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("CameraManager cannot be copied")

    @classmethod
    def create(cls, config: CameraConfig | Mapping[str, Any]) -> CameraManager:
        """
        Build a manager and install it as the process-wide instance.

        The previous instance, if any, is replaced only once the new one is
        fully built.
        """
        try:
            manager = cls(config)
        except CameraConfigError as e:
            logger.error("invalid camera configuration: %s", e)
            raise
        CameraManager._instance = manager
        logger.info(
            "camera manager ready: %s model, %dx%d, dim=%d, focal_length=%.3f",
            manager.kind,
            manager.cols,
            manager.rows,
            manager.dim,
            manager.focal_length,
        )
        return manager

    @classmethod
    def instance(cls) -> CameraManager:
        if CameraManager._instance is None:
            raise CameraNotInitializedError("CameraManager.create() has not been called")
        return CameraManager._instance

    def _active(self) -> CameraModel:
        model = self._model
        if not isinstance(model, _MODEL_CLASSES):
            raise CameraContractError(f"unknown camera model: {type(model).__name__}")
        return model

    def _sync_intrinsics(self) -> None:
        fx, fy, cx, cy = (float(v) for v in self._model.params[:4])
        self._fx, self._fy, self._cx, self._cy = fx, fy, cx, cy
        self._fl = math.sqrt(0.5 * (fx * fx + fy * fy))

    def project(self, xc: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        """
        Camera-frame point -> pixel.

        xc: normalized point (x, y) or camera-frame point (X, Y, Z) with Z > 0.
        jac: optional (2,2) buffer receiving d(pixel)/d(x, y).
        jacc: optional (2,dim) buffer receiving d(pixel)/d(intrinsics).
        """
        return self._active().project(xc, jac, jacc)

    def unproject(self, xp: np.ndarray, jac: np.ndarray | None = None, jacc: np.ndarray | None = None) -> np.ndarray:
        """
        Pixel -> normalized point (x, y).

        jac: optional (2,2) buffer receiving d(x, y)/d(pixel).
        jacc must be None: the intrinsics jacobian is not provided.
        """
        if jacc is not None:
            raise CameraContractError("unproject does not provide a jacobian w.r.t. camera intrinsics")
        return self._active().unproject(xp, jac)

    def update_state(self, delta: np.ndarray) -> None:
        """Apply an additive intrinsics step (length >= dim), then refresh the cache."""
        d = np.asarray(delta, dtype=np.float64).reshape(-1)
        self._active().update_state(d[: self._dim])
        self._sync_intrinsics()
        logger.debug(
            "intrinsics updated: fx=%.6f fy=%.6f cx=%.6f cy=%.6f fl=%.6f",
            self._fx,
            self._fy,
            self._cx,
            self._cy,
            self._fl,
        )

    def describe(self) -> str:
        return self._active().describe()

    def print(self, out: TextIO | None = None) -> None:
        self._active().print(out)

    def check_jacobians(self, points: np.ndarray, eps_scale: float = 1e-6) -> dict[str, float]:
        """Worst relative error of the analytic jacobians at normalized points (N,2)."""
        return check_jacobians(self._active(), points, eps_scale)

    def to_config(self) -> CameraConfig:
        """Snapshot of the current intrinsics as a config."""
        model = self._active()
        values = model.to_dict()
        return CameraConfig(
            model=model.KIND,
            rows=self._rows,
            cols=self._cols,
            fx=values["fx"],
            fy=values["fy"],
            cx=values["cx"],
            cy=values["cy"],
            distortion={name: values[name] for name in model.COEFFS},
        )

    @property
    def kind(self) -> str:
        return self._model.KIND

    @property
    def focal_length(self) -> float:
        return self._fl

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def resolution(self) -> tuple[int, int]:
        return self._rows, self._cols

    @property
    def fx(self) -> float:
        return self._fx

    @property
    def fy(self) -> float:
        return self._fy

    @property
    def cx(self) -> float:
        return self._cx

    @property
    def cy(self) -> float:
        return self._cy

    @property
    def intrinsics(self) -> tuple[float, float, float, float]:
        return self._fx, self._fy, self._cx, self._cy

    @property
    def dim(self) -> int:
        return self._dim
