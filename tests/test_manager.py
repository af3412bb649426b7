import copy
import io
import logging
import math

import numpy as np
import pytest

from camera_configs import ALL_CFGS, EQUIDISTANT_CFG, PINHOLE_CFG, RADTAN_CFG
from camkit.config import CameraConfig, parse_camera_config
from camkit.core.models import MODEL_TYPES
from camkit.errors import CameraConfigError, CameraContractError, CameraNotInitializedError
from camkit.manager import CameraManager


def _assert_cache_consistent(cam: CameraManager) -> None:
    fx, fy, cx, cy = (float(v) for v in cam._model.params[:4])
    assert cam.intrinsics == (fx, fy, cx, cy)
    assert (cam.fx, cam.fy, cam.cx, cam.cy) == (fx, fy, cx, cy)
    assert cam.focal_length == pytest.approx(math.sqrt(0.5 * (fx * fx + fy * fy)), rel=1e-15)


def test_pinhole_scenario():
    cam = CameraManager.create(PINHOLE_CFG)
    np.testing.assert_allclose(cam.project([0.0, 0.0, 1.0]), [320.0, 240.0])

    cam.update_state([10.0, 10.0, 0.0, 0.0, 0.0, 0.0])
    assert cam.fx == pytest.approx(510.0)
    assert cam.fy == pytest.approx(510.0)
    assert cam.focal_length == pytest.approx(510.0)
    np.testing.assert_allclose(cam.project([0.1, 0.0]), [371.0, 240.0])


@pytest.mark.parametrize("kind", sorted(ALL_CFGS))
def test_update_keeps_cache_in_sync(kind):
    cam = CameraManager(ALL_CFGS[kind])
    _assert_cache_consistent(cam)
    rng = np.random.default_rng(3)
    for _ in range(5):
        delta = rng.normal(scale=1e-3, size=cam.dim + 3)
        delta[:4] *= 1000.0
        cam.update_state(delta)
        _assert_cache_consistent(cam)


@pytest.mark.parametrize("kind", sorted(ALL_CFGS))
def test_dim_matches_selected_model(kind):
    cam = CameraManager.create(ALL_CFGS[kind])
    assert cam.kind == kind
    assert cam.dim == MODEL_TYPES[kind].DIM
    cam.update_state(np.zeros(cam.dim))
    assert cam.dim == MODEL_TYPES[kind].DIM


def test_accessors():
    cam = CameraManager(RADTAN_CFG)
    assert cam.rows == 480
    assert cam.cols == 752
    assert cam.resolution == (480, 752)
    assert cam.intrinsics == (458.654, 457.296, 367.215, 248.375)


def test_forwards_to_active_model():
    cfg = parse_camera_config(EQUIDISTANT_CFG)
    cam = CameraManager(cfg)
    model = MODEL_TYPES[cfg.model](cfg.params())

    xc = np.array([0.4, -0.7])
    jac_a, jac_b = np.zeros((2, 2)), np.zeros((2, 2))
    jacc_a, jacc_b = np.zeros((2, 8)), np.zeros((2, 8))
    np.testing.assert_array_equal(cam.project(xc, jac_a, jacc_a), model.project(xc, jac_b, jacc_b))
    np.testing.assert_array_equal(jac_a, jac_b)
    np.testing.assert_array_equal(jacc_a, jacc_b)

    xp = np.array([100.0, 400.0])
    np.testing.assert_array_equal(cam.unproject(xp, jac_a), model.unproject(xp, jac_b))
    np.testing.assert_array_equal(jac_a, jac_b)


def test_instance_before_create_raises():
    with pytest.raises(CameraNotInitializedError):
        CameraManager.instance()


def test_create_installs_and_replaces_instance():
    first = CameraManager.create(PINHOLE_CFG)
    assert CameraManager.instance() is first
    second = CameraManager.create(RADTAN_CFG)
    assert CameraManager.instance() is second
    assert CameraManager.instance().dim == 9


def test_failed_create_keeps_previous_instance(caplog):
    first = CameraManager.create(PINHOLE_CFG)
    with caplog.at_level(logging.ERROR, logger="camkit.manager"):
        with pytest.raises(CameraConfigError, match="unknown camera model"):
            CameraManager.create(dict(PINHOLE_CFG, model="division"))
    assert "invalid camera configuration" in caplog.text
    assert CameraManager.instance() is first


def test_create_logs_selected_model(caplog):
    with caplog.at_level(logging.INFO, logger="camkit.manager"):
        CameraManager.create(EQUIDISTANT_CFG)
    assert "equidistant model" in caplog.text


def test_unproject_with_intrinsics_jacobian_is_contract_violation():
    cam = CameraManager.create(PINHOLE_CFG)
    with pytest.raises(CameraContractError):
        cam.unproject([320.0, 240.0], jacc=np.zeros((2, 4)))


def test_unknown_active_variant_is_contract_violation():
    cam = CameraManager(PINHOLE_CFG)
    cam._model = object()
    with pytest.raises(CameraContractError, match="unknown camera model"):
        cam.project([0.0, 0.0])
    with pytest.raises(CameraContractError):
        cam.update_state(np.zeros(4))


def test_short_update_is_rejected_and_cache_untouched():
    cam = CameraManager(RADTAN_CFG)
    before = cam.intrinsics
    with pytest.raises(CameraContractError):
        cam.update_state(np.ones(4))
    assert cam.intrinsics == before


def test_manager_cannot_be_copied():
    cam = CameraManager(PINHOLE_CFG)
    with pytest.raises(TypeError):
        copy.copy(cam)
    with pytest.raises(TypeError):
        copy.deepcopy(cam)


def test_print_forwards_to_model():
    cam = CameraManager(RADTAN_CFG)
    buf = io.StringIO()
    cam.print(buf)
    assert buf.getvalue().startswith("radtan camera (9 parameters)")
    assert cam.describe() in buf.getvalue()


def test_to_config_reflects_updates():
    cam = CameraManager(RADTAN_CFG)
    delta = np.zeros(9)
    delta[0] = 2.0
    delta[4] = 0.01
    cam.update_state(delta)
    cfg = cam.to_config()
    assert cfg.model == "radtan"
    assert (cfg.rows, cfg.cols) == (480, 752)
    assert cfg.fx == pytest.approx(RADTAN_CFG["fx"] + 2.0)
    assert cfg.distortion["k1"] == pytest.approx(RADTAN_CFG["k1"] + 0.01)
    np.testing.assert_allclose(CameraManager(cfg).project([0.2, 0.3]), cam.project([0.2, 0.3]))


def test_check_jacobians_on_manager():
    cam = CameraManager(EQUIDISTANT_CFG)
    errs = cam.check_jacobians(np.array([[0.1, 0.2], [-0.4, 0.3]]))
    assert max(errs.values()) < 1e-6


def test_create_rejects_invalid_config_object():
    first = CameraManager.create(PINHOLE_CFG)
    with pytest.raises(CameraConfigError):
        CameraManager.create(CameraConfig(model="pinhole", rows=-1, cols=0, fx=0.0, fy=-5.0, cx=0.0, cy=0.0))
    with pytest.raises(CameraConfigError, match="w is required"):
        CameraManager(CameraConfig(model="atan", rows=480, cols=640, fx=300.0, fy=300.0, cx=320.0, cy=240.0))
    assert CameraManager.instance() is first


def test_config_object_with_alias_model_name():
    cam = CameraManager(CameraConfig(model="Pinhole", rows=480, cols=640, fx=500.0, fy=500.0, cx=320.0, cy=240.0))
    assert cam.kind == "pinhole"
    assert cam.dim == 4
