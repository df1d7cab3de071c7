import pytest

import odometer
from errors import InvalidImage, InvalidReading


@pytest.mark.parametrize("filename,expected", [
    ("odometer_1234.jpg", 1234),
    ("IMG-0042.png", 42),
    ("/tmp/uploads/trip 85 km.jpeg", 85),
    ("12abc34.jpg", 12),
])
def test_reading_taken_from_filename(filename, expected):
    assert odometer.estimate_distance(filename) == expected


@pytest.mark.parametrize("filename", ["odometer.jpg", "", None])
def test_fallback_distance_when_no_reading(filename):
    low, high = odometer.FALLBACK_KM_RANGE
    for _ in range(50):
        assert low <= odometer.estimate_distance(filename) <= high


def test_fallback_uses_random_source(monkeypatch):
    monkeypatch.setattr(odometer.random, "randint", lambda a, b: 123)

    assert odometer.estimate_distance("photo.jpg") == 123


def test_ensure_image_accepts_png(png_bytes):
    assert odometer.ensure_image(png_bytes) == "PNG"


@pytest.mark.parametrize("data", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\nbroken"])
def test_ensure_image_rejects_garbage(data):
    with pytest.raises(InvalidImage):
        odometer.ensure_image(data)


def test_reading_at_limit_is_accepted():
    assert odometer.estimate_distance(f"odo_{odometer.MAX_READING_KM}.jpg") == odometer.MAX_READING_KM
    assert odometer.estimate_distance("odo_000042.jpg") == 42


@pytest.mark.parametrize("filename", [
    f"odo_{odometer.MAX_READING_KM + 1}.jpg",
    "odo_123456789012345678901234567890.png",
    "odo_" + "9" * 5000 + ".png",
])
def test_reading_above_limit_is_rejected(filename):
    with pytest.raises(InvalidReading):
        odometer.estimate_distance(filename)


def test_ensure_image_rejects_oversized_dimensions(png_bytes, monkeypatch):
    # 8x8 pixels is more than twice this limit, which Pillow treats as a bomb
    monkeypatch.setattr(odometer.Image, "MAX_IMAGE_PIXELS", 10)

    with pytest.raises(InvalidImage):
        odometer.ensure_image(png_bytes)
