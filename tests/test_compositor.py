import io

import pytest
from PIL import Image

from image_crop_tool import compositor, image_io
from image_crop_tool.errors import CompositeError, DegenerateRegion
from image_crop_tool.interaction import InteractionController
from image_crop_tool.models import CropRegion, Rect, Size, ViewportTransform

CONTAINER = Size(800, 500)

RED = (255, 0, 0)
BLUE = (0, 0, 255)
GREEN = (0, 255, 0)
YELLOW = (255, 255, 0)


def _decode(output) -> Image.Image:
    img = Image.open(io.BytesIO(output.data))
    img.load()
    return img


def _close_to(pixel, color, tolerance=40):
    return all(abs(a - b) <= tolerance for a, b in zip(pixel[:3], color))


def test_square_crop_of_landscape_image(landscape_png):
    source = image_io.load(landscape_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=1.0)

    output = compositor.render(source, controller.transform, controller.crop, CONTAINER)

    assert (output.width, output.height) == (800, 800)
    assert output.media_type == "image/png"
    assert _decode(output).size == (800, 800)


def test_source_rect_maps_display_crop_to_pixels():
    transform = ViewportTransform(scale=1.0, pan_x=400 - 800 / 3, pan_y=50)

    rect = compositor.source_rect(Rect(240, 90, 320, 320), transform, CONTAINER, Size(1600, 1200))

    assert rect.x == pytest.approx(320)
    assert rect.y == pytest.approx(120)
    assert rect.width == pytest.approx(960)
    assert rect.height == pytest.approx(960)


def test_source_rect_is_clipped_by_shrinking():
    transform = ViewportTransform(scale=1.0, pan_x=100, pan_y=50)

    rect = compositor.source_rect(Rect(50, 50, 200, 100), transform, CONTAINER, Size(400, 400))

    assert rect.x == 0
    assert rect.width == pytest.approx(150)


def test_free_crop_output_keeps_aspect(landscape_jpeg):
    source = image_io.load(landscape_jpeg)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=None)
    crop = controller.crop.rect

    output = compositor.render(source, controller.transform, controller.crop, CONTAINER)

    assert max(output.width, output.height) == 800
    assert output.height == pytest.approx(800 * crop.height / crop.width, abs=1)
    assert output.media_type == "image/jpeg"
    assert _decode(output).format == "JPEG"


def test_long_side_setting_is_honoured(landscape_png):
    source = image_io.load(landscape_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=2.0)

    output = compositor.render(source, controller.transform, controller.crop, CONTAINER, output_long_side=300)

    assert (output.width, output.height) == (300, 150)


@pytest.mark.parametrize(
    "rotations, left, right, top, bottom",
    [
        (0, RED, BLUE, None, None),
        (1, None, None, BLUE, RED),
        (2, BLUE, RED, None, None),
        (3, None, None, RED, BLUE),
    ],
)
def test_rotation_is_applied_to_output(halves_png, rotations, left, right, top, bottom):
    source = image_io.load(halves_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=1.0)
    for _ in range(rotations):
        controller.rotate()

    img = _decode(compositor.render(source, controller.transform, controller.crop, CONTAINER))

    if left is not None:
        assert _close_to(img.getpixel((20, 400)), left)
        assert _close_to(img.getpixel((780, 400)), right)
    else:
        assert _close_to(img.getpixel((400, 20)), top)
        assert _close_to(img.getpixel((400, 780)), bottom)


def test_rotated_rect_swaps_dimensions():
    rect = compositor.rotated_rect(Rect(10, 20, 100, 50), 1, Size(400, 300))

    assert rect == Rect(20, 400 - 10 - 100, 50, 100)
    assert compositor.rotated_rect(Rect(10, 20, 100, 50), 0, Size(400, 300)) == Rect(10, 20, 100, 50)


@pytest.mark.parametrize("rotations, expected", [(0, GREEN), (1, YELLOW), (2, BLUE), (3, RED)])
def test_off_centre_crop_follows_rotated_image(quadrants_png, rotations, expected):
    source = image_io.load(quadrants_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=1.0)
    for _ in range(rotations):
        controller.rotate()
    # Top-right corner of the image as drawn (display rect spans 200..600 x 50..450)
    crop = CropRegion(Rect(450, 60, 100, 100), 1.0)

    img = _decode(compositor.render(source, controller.transform, crop, CONTAINER))

    assert _close_to(img.getpixel((400, 400)), expected)


def test_non_square_crop_on_quarter_turn(quadrants_png):
    source = image_io.load(quadrants_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=2.0)
    controller.rotate()
    # Top half of the drawn image: the original right half, turned up
    crop = CropRegion(Rect(200, 50, 400, 200), 2.0)

    img = _decode(compositor.render(source, controller.transform, crop, CONTAINER))

    assert img.size == (800, 400)
    assert _close_to(img.getpixel((100, 200)), GREEN)
    assert _close_to(img.getpixel((700, 200)), YELLOW)
    assert _close_to(img.getpixel((380, 200)), GREEN)
    assert _close_to(img.getpixel((420, 200)), YELLOW)


def test_rotated_box_keeps_crop_aspect():
    intrinsic = Size(1600, 1200)
    controller = InteractionController(CONTAINER, intrinsic, aspect_ratio=2.0)
    controller.rotate()
    crop = Rect(250, 100, 300, 150)

    region = compositor.source_rect(crop, controller.transform, CONTAINER, intrinsic)
    box = compositor.rotated_rect(region, 1, intrinsic)

    assert (region.width, region.height) == pytest.approx((450, 900))
    assert box.width / box.height == pytest.approx(2.0)
    assert compositor.output_size(crop, 800) == (800, 400)


def test_zero_area_crop_is_degenerate(landscape_png):
    source = image_io.load(landscape_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size)
    job = compositor.make_job(source, controller.transform, controller.crop, CONTAINER)
    job = compositor.RenderJob(**{**job.__dict__, "crop": Rect(300, 200, 0, 0)})

    with pytest.raises(DegenerateRegion):
        compositor.composite(job)


def test_crop_outside_image_is_degenerate(landscape_png):
    source = image_io.load(landscape_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size)
    job = compositor.make_job(source, controller.transform, controller.crop, CONTAINER)
    job = compositor.RenderJob(**{**job.__dict__, "crop": Rect(0, 0, 50, 50)})

    with pytest.raises(CompositeError):
        compositor.render_job(job)


def test_detached_job_survives_source_release(landscape_png):
    source = image_io.load(landscape_png)
    controller = InteractionController(CONTAINER, source.intrinsic_size, aspect_ratio=1.0)
    job = compositor.make_job(source, controller.transform, controller.crop, CONTAINER, detach=True)

    source.close()
    output = compositor.render_job(job)

    assert (output.width, output.height) == (800, 800)
