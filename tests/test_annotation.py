"""Tests for the drag-to-draw region selector."""

import pytest

from form_checker.annotation import RegionSelector, SelectorState
from form_checker.errors import EmptyRegionError, FormCheckerError, GeometryNotReady
from form_checker.geometry import Rectangle


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def selector(emitted):
    sel = RegionSelector("frame.jpg", emitted.append)
    sel.set_container_size(300, 600)
    sel.set_media_size(100, 100)
    return sel


def _drag(sel: RegionSelector, start, end, via=None):
    sel.touch_start(*start)
    for point in via or []:
        sel.touch_move(*point)
    sel.touch_move(*end)
    sel.touch_end(*end)


# ============================================================================
# Test: Drawing
# ============================================================================

class TestDrawing:

    def test_state_progression(self, selector):
        assert selector.state == SelectorState.IDLE
        selector.touch_start(10, 160)
        assert selector.state == SelectorState.DRAGGING
        selector.touch_move(40, 200)
        assert selector.candidate == Rectangle(x=10, y=160, width=30, height=40)
        selector.touch_end(40, 200)
        assert selector.state == SelectorState.DRAWN

    def test_reverse_drag_normalizes(self, selector):
        _drag(selector, (290, 440), (10, 160), via=[(200, 300), (100, 250)])
        rect = selector.candidate
        assert rect == Rectangle(x=10, y=160, width=280, height=280)
        assert rect.width >= 0 and rect.height >= 0

    @pytest.mark.parametrize(
        "start,end",
        [((0, 0), (50, 50)), ((50, 0), (0, 50)), ((0, 50), (50, 0)), ((50, 50), (0, 0))],
    )
    def test_every_direction_non_negative(self, selector, start, end):
        selector.touch_start(*start)
        selector.touch_move(*end)
        assert selector.candidate.width == 50
        assert selector.candidate.height == 50

    def test_tap_returns_to_idle(self, selector):
        selector.touch_start(20, 200)
        selector.touch_end(20, 200)
        assert selector.state == SelectorState.IDLE
        assert selector.candidate is None

    def test_move_without_start_ignored(self, selector):
        selector.touch_move(20, 20)
        assert selector.state == SelectorState.IDLE
        assert selector.candidate is None


# ============================================================================
# Test: Confirm
# ============================================================================

class TestConfirm:

    def test_confirm_emits_source_space(self, selector, emitted):
        _drag(selector, (0, 150), (300, 450))
        region = selector.confirm()
        assert region == Rectangle(x=0, y=0, width=100, height=100)
        assert emitted == [region]
        assert selector.state == SelectorState.CONFIRMED

    def test_preview_matches_confirm(self, selector):
        _drag(selector, (30, 180), (60, 240))
        preview = selector.preview()
        assert preview == selector.confirm()

    def test_confirmed_selector_is_inert(self, selector, emitted):
        _drag(selector, (0, 150), (300, 450))
        selector.confirm()
        _drag(selector, (10, 10), (20, 20))
        assert selector.state == SelectorState.CONFIRMED
        with pytest.raises(FormCheckerError):
            selector.confirm()
        assert len(emitted) == 1

    def test_reset_allows_redraw(self, selector, emitted):
        _drag(selector, (0, 150), (300, 450))
        selector.confirm()
        selector.reset()
        _drag(selector, (0, 150), (150, 300))
        assert selector.confirm() == Rectangle(x=0, y=0, width=50, height=50)
        assert len(emitted) == 2

    def test_confirm_without_geometry_blocked(self, emitted):
        sel = RegionSelector("frame.jpg", emitted.append)
        sel.set_container_size(300, 600)
        _drag(sel, (0, 150), (300, 450))
        assert not sel.can_confirm
        assert sel.preview() is None
        with pytest.raises(GeometryNotReady):
            sel.confirm()
        assert emitted == []
        assert sel.state == SelectorState.DRAWN

        sel.set_media_size(100, 100)
        assert sel.confirm() == Rectangle(x=0, y=0, width=100, height=100)

    def test_confirm_nothing_drawn(self, selector):
        with pytest.raises(FormCheckerError, match="No region"):
            selector.confirm()

    def test_confirm_refused_while_loading(self, selector, emitted):
        _drag(selector, (0, 150), (300, 450))
        selector.is_loading = True
        with pytest.raises(FormCheckerError, match="loading"):
            selector.confirm()
        assert emitted == []

    def test_drawing_allowed_while_loading(self, selector):
        selector.is_loading = True
        _drag(selector, (0, 150), (300, 450))
        assert selector.state == SelectorState.DRAWN

    def test_region_clipped_to_frame(self, selector):
        _drag(selector, (0, 0), (150, 300))
        region = selector.confirm()
        assert region == Rectangle(x=0, y=0, width=50, height=50)

    def test_region_in_letterbox_rejected(self, selector, emitted):
        _drag(selector, (0, 0), (100, 100))
        with pytest.raises(EmptyRegionError):
            selector.confirm()
        assert emitted == []
        assert selector.state == SelectorState.DRAWN
