import io
import logging
import os
import random
import re

from PIL import Image, UnidentifiedImageError

from errors import InvalidImage, InvalidReading

logger = logging.getLogger(__name__)

KM_PATTERN = re.compile(r"(\d+)")

# Range used when no reading can be taken from the upload
FALLBACK_KM_RANGE = (50, 199)

# Largest distance accepted for a single upload
MAX_READING_KM = 100_000


def ensure_image(data: bytes) -> str:
    """
    Check that the uploaded bytes decode as an image.
    Returns the Pillow format name (e.g. "JPEG").
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        logger.info("Rejected upload that is not a decodable image: %s", e)
        raise InvalidImage()


def estimate_distance(filename: str) -> int:
    """
    Estimate kilometres driven from an odometer photo.

    There is no recognition model yet: the first number in the file name is
    taken as the reading, otherwise a random distance is returned.
    """
    name = os.path.basename(filename or "")
    match = KM_PATTERN.search(name)
    if match:
        digits = match.group(1).lstrip("0") or "0"
        if len(digits) > len(str(MAX_READING_KM)) or int(digits) > MAX_READING_KM:
            raise InvalidReading(digits)
        return int(digits)

    km = random.randint(*FALLBACK_KM_RANGE)
    logger.info("No reading in %r, using estimated %s km", name, km)
    return km
