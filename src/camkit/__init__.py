from camkit.config import CameraConfig, load_camera_config, parse_camera_config, save_camera_config
from camkit.core.models import ATANCamera, EquidistantCamera, PinholeCamera, RadialTangentialCamera
from camkit.errors import CameraConfigError, CameraContractError, CameraError, CameraNotInitializedError
from camkit.manager import CameraManager

__all__ = [
    "CameraManager",
    "CameraConfig",
    "load_camera_config",
    "parse_camera_config",
    "save_camera_config",
    "ATANCamera",
    "EquidistantCamera",
    "PinholeCamera",
    "RadialTangentialCamera",
    "CameraError",
    "CameraConfigError",
    "CameraContractError",
    "CameraNotInitializedError",
]
