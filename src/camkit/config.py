from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import numpy as np

from camkit.core.models import MODEL_TYPES
from camkit.errors import CameraConfigError

_MODEL_ALIASES = {
    "atan": "atan",
    "fov": "atan",
    "equidistant": "equidistant",
    "equidist": "equidistant",
    "fisheye": "equidistant",
    "kb4": "equidistant",
    "radtan": "radtan",
    "radial_tangential": "radtan",
    "brown": "radtan",
    "pinhole": "pinhole",
}

# Coefficients without a neutral default.
_REQUIRED_COEFFS = {"atan": ("w",)}

_GENERIC_KEYS = ("model", "rows", "cols", "fx", "fy", "cx", "cy")


@dataclass(frozen=True)
class CameraConfig:
    """
    Camera section of an application config.

    `distortion` holds the model-specific coefficients by name, e.g.
    {"k1": .., "k2": .., "p1": .., "p2": .., "k3": ..} for `radtan`.

    Every instance is validated on construction: the model name is
    canonicalized, missing optional coefficients are filled with 0.0 and any
    violation raises CameraConfigError.
    """

    model: str
    rows: int
    cols: int
    fx: float
    fy: float
    cx: float
    cy: float
    distortion: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        model = canonical_model_name(self.model)
        coeff_names = MODEL_TYPES[model].COEFFS

        _require(isinstance(self.distortion, Mapping), "distortion must be a mapping of coefficient names")
        extra = sorted(set(self.distortion) - set(coeff_names))
        _require(not extra, f"unexpected keys for {model} model: {extra}")

        generic = {"rows": self.rows, "cols": self.cols, "fx": self.fx, "fy": self.fy, "cx": self.cx, "cy": self.cy}
        rows = _int_field(generic, "rows")
        cols = _int_field(generic, "cols")
        fx = _float_field(generic, "fx")
        fy = _float_field(generic, "fy")
        _require(fx > 0.0 and fy > 0.0, "fx and fy must be > 0")
        cx = _float_field(generic, "cx")
        cy = _float_field(generic, "cy")

        required = _REQUIRED_COEFFS.get(model, ())
        distortion = {
            name: _float_field(self.distortion, name, default=None if name in required else 0.0)
            for name in coeff_names
        }

        for name, value in (
            ("model", model),
            ("rows", rows),
            ("cols", cols),
            ("fx", fx),
            ("fy", fy),
            ("cx", cx),
            ("cy", cy),
            ("distortion", distortion),
        ):
            object.__setattr__(self, name, value)

    @property
    def dim(self) -> int:
        return MODEL_TYPES[self.model].DIM

    def params(self) -> np.ndarray:
        """Full intrinsic vector in the model's layout (fx, fy, cx, cy, coeffs...)."""
        coeffs = [self.distortion[name] for name in MODEL_TYPES[self.model].COEFFS]
        return np.array([self.fx, self.fy, self.cx, self.cy, *coeffs], dtype=np.float64)


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise CameraConfigError(msg)


def _is_number(raw: Any) -> bool:
    return not isinstance(raw, bool) and isinstance(raw, numbers.Real)


def _int_field(data: Mapping[str, Any], key: str) -> int:
    raw = data.get(key)
    _require(raw is not None, f"{key} is required")
    _require(_is_number(raw), f"{key} must be a number")
    _require(float(raw).is_integer(), f"{key} must be an integer")
    value = int(raw)
    _require(value > 0, f"{key} must be > 0")
    return value


def _float_field(data: Mapping[str, Any], key: str, default: float | None = None) -> float:
    raw = data.get(key, default)
    _require(raw is not None, f"{key} is required")
    _require(_is_number(raw), f"{key} must be a number")
    value = float(raw)
    _require(math.isfinite(value), f"{key} must be finite")
    return value


def canonical_model_name(name: str) -> str:
    key = str(name).strip().lower().replace("-", "_")
    _require(key in _MODEL_ALIASES, f"unknown camera model: {name!r}")
    return _MODEL_ALIASES[key]


def parse_camera_config(data: Mapping[str, Any]) -> CameraConfig:
    """
    Validate a camera config mapping.

    Accepts the camera section itself or a document holding it under "camera".
    """
    _require(isinstance(data, Mapping), "camera config must be an object")
    section = data.get("camera")
    if isinstance(section, Mapping):
        data = section

    raw_model = data.get("model")
    _require(isinstance(raw_model, str), "model is required (atan|equidistant|radtan|pinhole)")
    model = canonical_model_name(raw_model)
    coeff_names = MODEL_TYPES[model].COEFFS

    extra = sorted(set(data) - set(_GENERIC_KEYS) - set(coeff_names))
    _require(not extra, f"unexpected keys for {model} model: {extra}")

    return CameraConfig(
        model=model,
        rows=data.get("rows"),
        cols=data.get("cols"),
        fx=data.get("fx"),
        fy=data.get("fy"),
        cx=data.get("cx"),
        cy=data.get("cy"),
        distortion={name: data[name] for name in coeff_names if name in data},
    )


def camera_config_to_dict(config: CameraConfig) -> dict[str, Any]:
    out: dict[str, Any] = {
        "model": config.model,
        "rows": int(config.rows),
        "cols": int(config.cols),
        "fx": float(config.fx),
        "fy": float(config.fy),
        "cx": float(config.cx),
        "cy": float(config.cy),
    }
    for name in MODEL_TYPES[config.model].COEFFS:
        out[name] = float(config.distortion[name])
    return out


def load_camera_config(path: str | Path) -> CameraConfig:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CameraConfigError(f"{p} is not valid JSON: {e}") from e
    return parse_camera_config(data)


def save_camera_config(path: str | Path, config: CameraConfig) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(camera_config_to_dict(config), indent=2, sort_keys=True), encoding="utf-8")
    return p
