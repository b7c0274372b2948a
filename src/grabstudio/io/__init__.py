"""File I/O for GrabStudio."""

from grabstudio.io.image_io import (
    ImageIOError,
    SUPPORTED_EXTENSIONS,
    read_image,
    write_image,
)

__all__ = [
    "ImageIOError",
    "SUPPORTED_EXTENSIONS",
    "read_image",
    "write_image",
]
