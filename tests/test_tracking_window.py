import pytest

from marker2pitch.app_config import WINDOW_FIXED, WINDOW_TRACKING
from marker2pitch.tracking.tracking_window import TrackingWindow


class TestTrackingWindow:
    @pytest.fixture
    def window(self):
        return TrackingWindow(frame_width=640, width=20, mode=WINDOW_TRACKING, alpha=0.1, idle_alpha=0.005)

    def test_starts_centred(self, window):
        assert window.state.left_x == 310
        assert window.state.right_x == 330

    def test_contains_is_half_open(self, window):
        assert window.contains(310)
        assert window.contains(329.9)
        assert not window.contains(330)
        assert not window.contains(309.9)

    def test_moves_toward_candidates(self, window):
        state = window.update([100.0], chord_active=False)
        assert state.left_x == pytest.approx(0.1 * 90 + 0.9 * 310)

    def test_uses_mean_of_all_candidates(self, window):
        state = window.update([100.0, 300.0], chord_active=False)
        assert state.left_x == pytest.approx(0.1 * 190 + 0.9 * 310)

    def test_clamped_to_frame(self):
        window = TrackingWindow(frame_width=640, width=20, alpha=1.0)

        assert window.update([0.0], chord_active=False).left_x == 0
        assert window.update([640.0], chord_active=False).left_x == 620

    def test_idle_relaxes_toward_centre(self, window):
        moved = window.update([100.0], chord_active=False).left_x

        relaxed = window.update([], chord_active=False).left_x

        assert relaxed == pytest.approx(0.005 * 310 + 0.995 * moved)
        assert moved < relaxed < 310

    def test_no_relaxation_while_chord_active(self, window):
        moved = window.update([100.0], chord_active=False).left_x
        assert window.update([], chord_active=True).left_x == moved

    def test_fixed_mode_never_moves(self):
        window = TrackingWindow(frame_width=640, width=20, mode=WINDOW_FIXED, alpha=1.0)

        window.update([10.0], chord_active=False)
        window.update([], chord_active=False)

        assert window.state.left_x == 310

    def test_window_wider_than_frame(self):
        window = TrackingWindow(frame_width=10, width=20)
        assert window.state.left_x == 0

    def test_reset_and_resize(self, window):
        window.update([100.0], chord_active=False)

        window.reset()
        assert window.state.left_x == 310

        window.resize(1280)
        assert window.state.left_x == 630

    @pytest.mark.parametrize("alpha", [0.0, -0.5, 1.5])
    def test_invalid_alpha_rejected(self, alpha):
        with pytest.raises(ValueError):
            TrackingWindow(frame_width=640, alpha=alpha)

    def test_invalid_mode_rejected(self):
        with pytest.raises(ValueError):
            TrackingWindow(frame_width=640, mode="wobble")
