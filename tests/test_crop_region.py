import pytest

from image_crop_tool import crop_region
from image_crop_tool.models import CropRegion, Handle, Point, Rect

# Display rect of a 1600x1200 image in an 800x500 container
DISPLAY = Rect(400 - 800 / 3, 50, 1600 / 3, 400)


def _square() -> CropRegion:
    return crop_region.initialize(DISPLAY, 1.0)


def test_initialize_square_crop_is_centered():
    region = _square()

    assert region.rect.width == pytest.approx(320)
    assert region.rect.height == pytest.approx(320)
    assert region.rect.x == pytest.approx(240)
    assert region.rect.y == pytest.approx(90)
    assert region.aspect_ratio == 1.0


def test_initialize_free_crop_uses_eighty_percent():
    region = crop_region.initialize(DISPLAY, None)

    assert region.rect.width == pytest.approx(DISPLAY.width * 0.8)
    assert region.rect.height == pytest.approx(320)
    assert region.aspect_ratio is None


def test_resize_below_minimum_snaps_to_fifty():
    region = _square()

    resized = crop_region.resize_corner(region, Handle.SE, Point(250, 100), DISPLAY)

    assert resized.rect.width == pytest.approx(50)
    assert resized.rect.height == pytest.approx(50)
    assert resized.rect.x == pytest.approx(240)
    assert resized.rect.y == pytest.approx(90)


def test_resize_keeps_aspect_with_larger_delta_driving():
    region = _square()

    # Width grows by 40, height by 10: width wins
    resized = crop_region.resize_corner(region, Handle.SE, Point(600, 420), DISPLAY)

    assert resized.rect.width == pytest.approx(360)
    assert resized.rect.height == pytest.approx(360)
    assert crop_region.aspect_holds(resized)


def test_resize_is_capped_by_image_bounds():
    region = _square()

    resized = crop_region.resize_corner(region, Handle.SE, Point(2000, 2000), DISPLAY)

    assert crop_region.contains_region(DISPLAY, resized.rect)
    assert crop_region.aspect_holds(resized)
    assert resized.rect.height == pytest.approx(DISPLAY.bottom - 90)


def test_resize_from_north_west_keeps_opposite_corner():
    region = _square()
    se = Point(region.rect.right, region.rect.bottom)

    resized = crop_region.resize_corner(region, Handle.NW, Point(300, 150), DISPLAY)

    assert resized.rect.right == pytest.approx(se.x)
    assert resized.rect.bottom == pytest.approx(se.y)
    assert resized.rect.width == pytest.approx(260)


def test_free_resize_changes_axes_independently():
    region = crop_region.initialize(DISPLAY, None)
    rect = region.rect

    resized = crop_region.resize_corner(region, Handle.SE, Point(rect.right - 100, rect.bottom - 20), DISPLAY)

    assert resized.rect.width == pytest.approx(rect.width - 100)
    assert resized.rect.height == pytest.approx(rect.height - 20)


def test_move_is_clamped_inside_display():
    region = _square()

    moved = crop_region.move_to(region, 10_000, -10_000, DISPLAY)

    assert moved.rect.right == pytest.approx(DISPLAY.right)
    assert moved.rect.top == pytest.approx(DISPLAY.top)
    assert moved.rect.width == pytest.approx(320)


def test_fit_within_shrinks_uniformly_for_smaller_bounds():
    region = _square()
    bounds = Rect(300, 100, 200, 150)

    fitted = crop_region.fit_within(region, bounds)

    assert fitted.rect.width == pytest.approx(150)
    assert fitted.rect.height == pytest.approx(150)
    assert crop_region.contains_region(bounds, fitted.rect)


def test_fit_within_free_crop_shrinks_per_axis():
    narrow = CropRegion(Rect(0, 0, 50, 360), None)
    bounds = Rect(0, 0, 266, 200)

    fitted = crop_region.fit_within(narrow, bounds)

    assert fitted.rect.width == pytest.approx(50)
    assert fitted.rect.height == pytest.approx(200)
    assert crop_region.contains_region(bounds, fitted.rect)


def test_fit_within_leaves_fitting_crop_alone():
    region = _square()

    assert crop_region.fit_within(region, DISPLAY) == region


def test_containment_wins_over_minimum_size():
    region = _square()
    tiny = Rect(0, 0, 30, 20)

    fitted = crop_region.fit_within(region, tiny)

    assert crop_region.contains_region(tiny, fitted.rect)
    assert fitted.rect.height == pytest.approx(20)


def test_handle_positions():
    positions = crop_region.handle_positions(Rect(10, 20, 100, 50))

    assert positions[Handle.NW] == Point(10, 20)
    assert positions[Handle.SE] == Point(110, 70)
