"""Tests for the view transform."""
import pytest

from custom_components.facility_twin.floorplan.transform import (
    MAX_ZOOM,
    MIN_ZOOM,
    ViewTransform,
)


@pytest.fixture
def transform():
    """A 100x50 m floor shown at 400x100 pixels."""
    return ViewTransform(100, 50, 400, 100)


def test_screen_to_world_identity_view(transform):
    point = transform.screen_to_world(200, 50)
    assert (point.x, point.y) == pytest.approx((50, 25))


def test_world_to_screen_inverts(transform):
    transform.zoom_at(123, 45, 2.5)
    transform.pan_by(3, -2)

    world = transform.screen_to_world(310, 77)
    screen = transform.world_to_screen(world.x, world.y)

    assert (screen.x, screen.y) == pytest.approx((310, 77))


def test_zoom_at_keeps_anchor(transform):
    """The world point under the cursor stays put."""
    before = transform.screen_to_world(300, 20)
    transform.zoom_at(300, 20, 1.7)
    after = transform.screen_to_world(300, 20)

    assert transform.zoom == pytest.approx(1.7)
    assert (after.x, after.y) == pytest.approx((before.x, before.y))


def test_zoom_round_trip(transform):
    """zoom_at(f) then zoom_at(1/f) restores zoom and pan."""
    transform.pan_by(5, 7)
    zoom, pan_x, pan_y = transform.zoom, transform.pan_x, transform.pan_y

    transform.zoom_at(150, 60, 2.0)
    transform.zoom_at(150, 60, 0.5)

    assert transform.zoom == pytest.approx(zoom)
    assert transform.pan_x == pytest.approx(pan_x)
    assert transform.pan_y == pytest.approx(pan_y)


def test_repeated_zoom_does_not_drift(transform):
    anchor = transform.screen_to_world(222, 33)
    for _ in range(50):
        transform.zoom_at(222, 33, 1.03)
        transform.zoom_at(222, 33, 1 / 1.03)

    after = transform.screen_to_world(222, 33)
    assert (after.x, after.y) == pytest.approx((anchor.x, anchor.y), abs=1e-9)


def test_zoom_is_clamped(transform):
    transform.zoom_at(0, 0, 100)
    assert transform.zoom == MAX_ZOOM
    transform.zoom_at(0, 0, 0.001)
    assert transform.zoom == MIN_ZOOM


def test_wheel_with_modifier_zooms(transform):
    transform.wheel(0, -100, zoom_modifier=True, sx=200, sy=50)
    assert transform.zoom == pytest.approx(1.2)


def test_wheel_without_modifier_pans(transform):
    transform.wheel(10, -20, zoom_modifier=False)

    assert transform.zoom == 1.0
    assert (transform.pan_x, transform.pan_y) == pytest.approx((-5, 10))


def test_resize_and_reset(transform):
    transform.zoom_at(10, 10, 2)
    transform.resize(800, 200)
    transform.reset()

    assert transform.as_dict() == {"zoom": 1.0, "pan_x": 0.0, "pan_y": 0.0}
    point = transform.screen_to_world(800, 200)
    assert (point.x, point.y) == pytest.approx((100, 50))


def test_invalid_display_size():
    with pytest.raises(ValueError):
        ViewTransform(100, 50, 0, 100)


def test_font_scale():
    assert ViewTransform(100, 100, 400, 400).font_scale == 1.0
    assert ViewTransform(100, 100, 100, 100).font_scale == pytest.approx(1.0)
    assert ViewTransform(100, 100, 50, 50).font_scale == pytest.approx(0.75)
