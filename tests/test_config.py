import numpy as np
import pytest

from camera_configs import ATAN_CFG, PINHOLE_CFG, RADTAN_CFG
from camkit.config import (
    CameraConfig,
    camera_config_to_dict,
    load_camera_config,
    parse_camera_config,
    save_camera_config,
)
from camkit.errors import CameraConfigError


def test_parse_radtan_ok():
    cfg = parse_camera_config(RADTAN_CFG)
    assert cfg.model == "radtan"
    assert (cfg.rows, cfg.cols) == (480, 752)
    assert cfg.dim == 9
    p = cfg.params()
    assert p.shape == (9,)
    np.testing.assert_allclose(p[:4], [458.654, 457.296, 367.215, 248.375])
    np.testing.assert_allclose(p[4:], [-0.28340811, 0.07395907, 0.00019359, 1.76187114e-05, 0.01])


def test_parse_accepts_aliases_and_camera_section():
    cfg = parse_camera_config({"camera": dict(ATAN_CFG, model="FOV"), "other": {"ignored": True}})
    assert cfg.model == "atan"
    assert cfg.distortion == {"w": 0.9}

    fisheye = parse_camera_config(
        {"model": "Fisheye", "rows": 10, "cols": 10, "fx": 1.0, "fy": 1.0, "cx": 5.0, "cy": 5.0}
    )
    assert fisheye.model == "equidistant"
    assert fisheye.distortion == {"k0": 0.0, "k1": 0.0, "k2": 0.0, "k3": 0.0}


def test_parse_rejects_unknown_model():
    with pytest.raises(CameraConfigError, match="unknown camera model"):
        parse_camera_config(dict(PINHOLE_CFG, model="omni"))


@pytest.mark.parametrize(
    "patch, msg",
    [
        ({"rows": None}, "rows is required"),
        ({"cols": 0}, "cols must be > 0"),
        ({"rows": 480.5}, "rows must be an integer"),
        ({"rows": True}, "rows must be a number"),
        ({"fx": -1.0}, "fx and fy must be > 0"),
        ({"cy": float("nan")}, "cy must be finite"),
        ({"k1": 0.1}, "unexpected keys"),
    ],
)
def test_parse_rejects_invalid_fields(patch, msg):
    data = dict(PINHOLE_CFG)
    data.update(patch)
    data = {k: v for k, v in data.items() if v is not None}
    with pytest.raises(CameraConfigError, match=msg):
        parse_camera_config(data)


def test_parse_atan_requires_w():
    data = {k: v for k, v in ATAN_CFG.items() if k != "w"}
    with pytest.raises(CameraConfigError, match="w is required"):
        parse_camera_config(data)


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        parse_camera_config({"rows": 1})


def test_save_load_roundtrip(tmp_path):
    cfg = parse_camera_config(RADTAN_CFG)
    path = save_camera_config(tmp_path / "cam" / "camera.json", cfg)
    assert path.exists()
    loaded = load_camera_config(path)
    assert loaded == cfg
    assert camera_config_to_dict(loaded)["k3"] == pytest.approx(0.01)


def test_load_rejects_invalid_json(tmp_path):
    p = tmp_path / "broken.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(CameraConfigError, match="not valid JSON"):
        load_camera_config(p)


def test_direct_construction_is_validated():
    with pytest.raises(CameraConfigError, match="rows must be > 0"):
        CameraConfig(model="pinhole", rows=-1, cols=0, fx=0.0, fy=-5.0, cx=0.0, cy=0.0)
    with pytest.raises(CameraConfigError, match="fx and fy must be > 0"):
        CameraConfig(model="pinhole", rows=480, cols=640, fx=0.0, fy=500.0, cx=320.0, cy=240.0)
    with pytest.raises(CameraConfigError, match="w is required"):
        CameraConfig(model="atan", rows=480, cols=640, fx=300.0, fy=300.0, cx=320.0, cy=240.0)
    with pytest.raises(CameraConfigError, match="unexpected keys"):
        CameraConfig(model="pinhole", rows=480, cols=640, fx=1.0, fy=1.0, cx=0.0, cy=0.0, distortion={"k1": 0.1})
    with pytest.raises(CameraConfigError, match="unknown camera model"):
        CameraConfig(model="omni", rows=480, cols=640, fx=1.0, fy=1.0, cx=0.0, cy=0.0)


def test_direct_construction_normalizes_fields():
    cfg = CameraConfig(
        model="Radial-Tangential",
        rows=np.int64(480),
        cols=752.0,
        fx=458,
        fy=457.0,
        cx=367.0,
        cy=248.0,
        distortion={"k1": -0.2},
    )
    assert cfg.model == "radtan"
    assert (cfg.rows, cfg.cols) == (480, 752)
    assert isinstance(cfg.rows, int) and isinstance(cfg.fx, float)
    assert cfg.distortion == {"k1": -0.2, "k2": 0.0, "p1": 0.0, "p2": 0.0, "k3": 0.0}
    assert cfg.params().shape == (9,)
