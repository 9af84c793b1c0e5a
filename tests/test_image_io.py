from pathlib import Path

import pytest
from PIL import Image

from image_crop_tool import image_io
from image_crop_tool.config import PSD_MEDIA_TYPE
from image_crop_tool.errors import DecodeError, EncodeError, SessionError


def test_load_sniffs_media_type(landscape_png, landscape_jpeg):
    png = image_io.load(landscape_png)
    jpeg = image_io.load(landscape_jpeg)

    assert png.media_type == "image/png"
    assert jpeg.media_type == "image/jpeg"
    assert (png.intrinsic_width, png.intrinsic_height) == (1600, 1200)


def test_explicit_media_type_is_kept(landscape_png):
    source = image_io.load(landscape_png, "Image/PNG ")

    assert source.media_type == "image/png"


def test_unencodable_media_type_falls_back_to_detected(landscape_jpeg):
    source = image_io.load(landscape_jpeg, "application/octet-stream")

    assert source.media_type == "image/jpeg"
    assert image_io.encode_image(source.bitmap, source.export_media_type)[:2] == b"\xff\xd8"


@pytest.mark.parametrize("data", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\n" + b"\x00" * 32])
def test_invalid_input_raises_decode_error(data):
    with pytest.raises(DecodeError):
        image_io.load(data)


def test_truncated_image_raises_decode_error(noisy_png):
    with pytest.raises(DecodeError):
        image_io.load(noisy_png[: len(noisy_png) // 3])


def test_corrupt_psd_raises_decode_error():
    with pytest.raises(DecodeError):
        image_io.load(b"8BPS" + b"\x00" * 64, PSD_MEDIA_TYPE)


def test_psd_sources_export_as_png():
    source = image_io.ImageSource(Image.new("RGB", (10, 10)), PSD_MEDIA_TYPE)

    assert source.export_media_type == "image/png"


def test_close_releases_bitmap(landscape_png):
    with image_io.load(landscape_png) as source:
        assert not source.released

    assert source.released
    with pytest.raises(SessionError):
        source.bitmap
    source.close()


def test_palette_images_are_normalised():
    img = Image.new("P", (20, 20))
    source = image_io.ImageSource(image_io._normalize_mode(img), "image/gif")

    assert source.bitmap.mode == "RGB"


def test_encode_unsupported_media_type():
    with pytest.raises(EncodeError):
        image_io.encode_image(Image.new("RGB", (10, 10)), "image/x-unknown")


def test_encode_flattens_alpha_for_jpeg():
    img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))

    data = image_io.encode_image(img, "image/jpeg")
    decoded = image_io.load(data)

    assert decoded.media_type == "image/jpeg"
    assert decoded.bitmap.getpixel((5, 5))[0] > 240


def test_media_type_helpers():
    assert image_io.media_type_for_path(Path("a/b/photo.JPG")) == "image/jpeg"
    assert image_io.media_type_for_path(Path("layers.psd")) == PSD_MEDIA_TYPE
    assert image_io.media_type_for_path(Path("notes.txt")) == ""
    assert image_io.extension_for_media_type("image/jpeg") == ".jpg"
    assert image_io.extension_for_media_type("image/webp") == ".webp"
    assert image_io.extension_for_media_type("application/x-unknown") == ".png"


def test_unique_path(tmp_path):
    target = tmp_path / "photo-cropped.png"
    assert image_io.unique_path(target) == target

    target.write_bytes(b"x")
    (tmp_path / "photo-cropped-01.png").write_bytes(b"x")

    assert image_io.unique_path(target) == tmp_path / "photo-cropped-02.png"


def test_load_path_reads_file(tmp_path, landscape_jpeg):
    path = tmp_path / "photo.jpg"
    path.write_bytes(landscape_jpeg)

    source = image_io.load_path(path)

    assert source.media_type == "image/jpeg"

    with pytest.raises(DecodeError):
        image_io.load_path(tmp_path / "missing.jpg")
