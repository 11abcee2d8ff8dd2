"""
Screenshot export of the rendered output.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Union
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger


def screenshot_filename(width: int, height: int, now: Optional[datetime] = None) -> str:
    """Build 'DIC_screenshot_{w}x{h}_{YYYY-MM-DDTHH-MM-SS}.png'."""
    now = now or datetime.now()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"DIC_screenshot_{width}x{height}_{stamp}.png"


def save_screenshot(
    image: NDArray[np.uint8],
    directory: Union[str, Path],
    now: Optional[datetime] = None,
) -> Path:
    """
    Save a rendered BGR image as PNG.

    Returns:
        Path of the written file

    Raises:
        OSError: If OpenCV fails to write the file
    """
    height, width = image.shape[:2]
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / screenshot_filename(width, height, now)

    if not cv2.imwrite(str(path), image):
        raise OSError(f"Failed to write screenshot {path}")

    logger.info(f"Screenshot saved: {path}")
    return path
