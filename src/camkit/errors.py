from __future__ import annotations


class CameraError(Exception):
    pass


class CameraConfigError(CameraError, ValueError):
    """Invalid or unrecognized camera configuration."""


class CameraContractError(CameraError, RuntimeError):
    """A caller asked for something the camera API does not provide."""


class CameraNotInitializedError(CameraContractError):
    pass
