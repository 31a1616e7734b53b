import pytest

from marker2pitch.app_config import GRID_STATIC, WINDOW_FIXED
from marker2pitch.core.app_state import AppState
from marker2pitch.detection.base import ContourGeometry


def marker_geometry(center_x, center_y, size=20.0, area=None, hull_area=None):
    """A square-ish contour centred on (center_x, center_y) that passes the round profile."""
    area = size * size * 0.75 if area is None else area
    hull_area = size * size * 0.8 if hull_area is None else hull_area
    return ContourGeometry(
        x=center_x - size / 2,
        y=center_y - size / 2,
        width=size,
        height=size,
        area=area,
        hull_area=hull_area,
    )


@pytest.fixture
def geometry():
    return marker_geometry


@pytest.fixture
def static_app_state():
    """Static grid on a 640x310 frame: note i covers [10 + 20i, 30 + 20i)."""
    app_state = AppState()
    app_state.grid.mode = GRID_STATIC
    app_state.window.mode = WINDOW_FIXED
    app_state.audio.enabled = False
    app_state.session.show_preview = False
    return app_state
