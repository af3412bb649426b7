from __future__ import annotations

import pytest

from camkit.manager import CameraManager


@pytest.fixture(autouse=True)
def _reset_camera_manager(monkeypatch):
    monkeypatch.setattr(CameraManager, "_instance", None)
