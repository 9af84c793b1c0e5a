import io

import pytest
from PIL import Image


def encode(img: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def landscape_png() -> bytes:
    """1600x1200 grey PNG."""
    return encode(Image.new("RGB", (1600, 1200), (128, 128, 128)), "PNG")


@pytest.fixture
def landscape_jpeg() -> bytes:
    return encode(Image.new("RGB", (1600, 1200), (200, 60, 30)), "JPEG")


@pytest.fixture
def halves_png() -> bytes:
    """400x400 PNG, left half red and right half blue."""
    img = Image.new("RGB", (400, 400), (0, 0, 255))
    img.paste((255, 0, 0), (0, 0, 200, 400))
    return encode(img, "PNG")


@pytest.fixture
def noisy_png() -> bytes:
    """Incompressible PNG, so any truncation cuts into pixel data."""
    return encode(Image.effect_noise((256, 256), 100).convert("RGB"), "PNG")


@pytest.fixture
def quadrants_png() -> bytes:
    """400x400 PNG: top-left red, top-right green, bottom-left blue, bottom-right yellow."""
    img = Image.new("RGB", (400, 400))
    img.paste((255, 0, 0), (0, 0, 200, 200))
    img.paste((0, 255, 0), (200, 0, 400, 200))
    img.paste((0, 0, 255), (0, 200, 200, 400))
    img.paste((255, 255, 0), (200, 200, 400, 400))
    return encode(img, "PNG")
