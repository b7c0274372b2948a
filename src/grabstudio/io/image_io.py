"""Raster file I/O through OpenCV."""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

logger = logging.getLogger("grabstudio.io")

SUPPORTED_EXTENSIONS = (".bmp", ".png", ".jpg", ".jpeg")


class ImageIOError(Exception):
    """A raster file could not be read or written."""


def read_image(path: Union[str, Path]) -> np.ndarray:
    """
    Read an image file as 8-bit RGB.

    Grey and RGBA files are converted; any alpha channel is dropped.

    Returns:
        (H, W, 3) uint8 array
    """
    path = Path(path)
    data = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if data is None:
        raise ImageIOError(f"Could not read image: {path}")
    logger.info(f"Loaded {path.name} ({data.shape[1]}x{data.shape[0]})")
    return cv2.cvtColor(data, cv2.COLOR_BGR2RGB)


def write_image(path: Union[str, Path], raster: np.ndarray):
    """
    Write an RGB or RGBA raster.

    Formats without an alpha channel (JPEG, BMP) get the color channels only.
    """
    path = Path(path)
    raster = np.asarray(raster, dtype=np.uint8)
    if raster.ndim == 3 and raster.shape[2] == 4:
        if path.suffix.lower() == ".png":
            data = cv2.cvtColor(raster, cv2.COLOR_RGBA2BGRA)
        else:
            data = cv2.cvtColor(raster, cv2.COLOR_RGBA2BGR)
    elif raster.ndim == 3 and raster.shape[2] == 3:
        data = cv2.cvtColor(raster, cv2.COLOR_RGB2BGR)
    elif raster.ndim == 2:
        data = raster
    else:
        raise ImageIOError(f"Cannot write raster of shape {raster.shape}")

    try:
        ok = cv2.imwrite(str(path), data)
    except cv2.error as e:
        raise ImageIOError(f"Could not write image {path}: {e}") from e
    if not ok:
        raise ImageIOError(f"Could not write image: {path}")
    logger.info(f"Saved {path.name}")
