from __future__ import annotations

from pathlib import Path
from typing import Union

import cv2
import numpy as np

from .errors import ImageDecodeError


PathLike = Union[str, Path]


def read_image(path: PathLike) -> np.ndarray:
    """
    Decode an image file into an HWC BGR uint8 array.

    Reads the bytes first so non-ASCII paths work on every platform.
    """

    p = Path(path)
    if not p.is_file():
        raise ImageDecodeError(f"Image not found: {p}")
    try:
        data = np.fromfile(str(p), dtype=np.uint8)
    except OSError as exc:
        raise ImageDecodeError(f"Could not read image: {p}") from exc

    img = cv2.imdecode(data, cv2.IMREAD_COLOR) if data.size else None
    if img is None:
        raise ImageDecodeError(f"Could not decode image: {p}")
    return img
