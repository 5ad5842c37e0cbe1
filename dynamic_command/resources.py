"""Access to the image assets shipped with the package."""

from __future__ import annotations

import logging
from importlib.resources import as_file, files
from typing import BinaryIO

from .api import ShortReadError
from .const import SAMPLE_IMAGE

_LOGGER = logging.getLogger(__name__)

ASSETS_DIR = "assets"


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``stream``.

    Raises:
        ShortReadError: If the stream ends early.

    """
    data = stream.read(size)
    if len(data) != size:
        short_read = f"Short read from resource stream: {len(data)} of {size} bytes"
        raise ShortReadError(short_read)
    return data


def load_sample_image(name: str = SAMPLE_IMAGE) -> bytes:
    """Load a packaged image asset.

    Args:
        name: File name inside the package assets directory.

    Returns:
        The image bytes.

    Raises:
        FileNotFoundError: If no asset has that name.
        ShortReadError: If the asset could not be read completely.

    """
    resource = files(__package__) / ASSETS_DIR / name
    with as_file(resource) as path, path.open("rb") as stream:
        data = read_exact(stream, path.stat().st_size)
    _LOGGER.debug("Loaded image asset %s (%d bytes)", name, len(data))
    return data
