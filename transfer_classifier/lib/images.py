import io
from pathlib import Path
from typing import Union

from PIL import Image

from .errors import InvalidInputError, NotFoundError


def read_image_bytes(path: Union[str, Path]) -> bytes:
    """Read the raw bytes of an image file."""
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(f"Image file not found: {path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise InvalidInputError(f"Could not read image {path}: {e}") from e


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes to an RGB Pillow image."""
    if not data:
        raise InvalidInputError("Image data is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Exception as e:
        raise InvalidInputError(f"Could not decode image: {e}") from e
    return image.convert("RGB")


def load_image(path: Union[str, Path]) -> Image.Image:
    return decode_image(read_image_bytes(path))
