from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .types import PreprocessResult


LETTERBOX_COLOR = (114, 114, 114)
IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


def _check_image(image_bgr: np.ndarray) -> Tuple[int, int]:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
    h, w = image_bgr.shape[:2]
    if h == 0 or w == 0:
        raise ValueError(f"Image has no pixels (shape {image_bgr.shape}).")
    return w, h


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, int, int] = LETTERBOX_COLOR,
):
    """
    Resize keeping aspect ratio, then pad to exactly `new_shape` (width, height) with the image centered.

    Returns:
        padded: resized + padded image, shape (new_h, new_w, 3)
        scale: resize factor applied to both axes
        pad: (dw, dh) left/top padding; right/bottom get the remainder
    """

    w, h = _check_image(image)
    new_w, new_h = new_shape

    scale = min(new_w / w, new_h / h)
    resized_w = min(new_w, max(1, int(round(w * scale))))
    resized_h = min(new_h, max(1, int(round(h * scale))))
    dw = (new_w - resized_w) / 2
    dh = (new_h - resized_h) / 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, scale, (dw, dh)


def _planar_band(band: np.ndarray, mean: Optional[np.ndarray], std: Optional[np.ndarray]) -> np.ndarray:
    # BGR -> RGB, [0, 1], HWC -> CHW
    out = band[:, :, ::-1].astype(np.float32) / np.float32(255.0)
    if mean is not None:
        out = out - mean
    if std is not None:
        out = out / std
    return np.transpose(out, (2, 0, 1))


def to_planar_tensor(
    image_bgr: np.ndarray,
    mean: Optional[Sequence[float]] = None,
    std: Optional[Sequence[float]] = None,
    workers: int = 1,
) -> np.ndarray:
    """
    Convert an HWC BGR uint8 image to a (1, 3, H, W) float32 RGB tensor.

    With workers > 1 the rows are split into bands converted on a thread pool; every
    band is independent so the result is identical to the single-threaded path.
    """

    mean_arr = np.asarray(mean, dtype=np.float32) if mean is not None else None
    std_arr = np.asarray(std, dtype=np.float32) if std is not None else None

    h = image_bgr.shape[0]
    n_bands = max(1, min(int(workers), h))
    if n_bands == 1:
        planar = _planar_band(image_bgr, mean_arr, std_arr)
    else:
        bands = np.array_split(image_bgr, n_bands, axis=0)
        with ThreadPoolExecutor(max_workers=n_bands) as pool:
            parts = list(pool.map(lambda b: _planar_band(b, mean_arr, std_arr), bands))
        planar = np.concatenate(parts, axis=1)

    return np.ascontiguousarray(planar[None, ...], dtype=np.float32)


def preprocess_letterbox(
    image_bgr: np.ndarray,
    input_size: Tuple[int, int],
    color: Tuple[int, int, int] = LETTERBOX_COLOR,
    workers: int = 1,
) -> PreprocessResult:
    """
    Detection preprocessing: letterbox to `input_size` (width, height), scale to [0, 1], no mean/std.
    """

    orig_w, orig_h = _check_image(image_bgr)
    padded, scale, (dw, dh) = letterbox(image_bgr, new_shape=input_size, color=color)
    tensor = to_planar_tensor(padded, workers=workers)
    return PreprocessResult(tensor=tensor, scale=scale, pad_left=dw, pad_top=dh, orig_size=(orig_w, orig_h))


def preprocess_classification(
    image_bgr: np.ndarray,
    input_size: Tuple[int, int],
    mean: Optional[Sequence[float]] = IMAGENET_MEAN,
    std: Optional[Sequence[float]] = IMAGENET_STD,
    workers: int = 1,
) -> PreprocessResult:
    """
    Classification preprocessing: stretch-resize to `input_size` then mean/std normalize.

    No padding is applied, so pad is zero and `scale` is only informational.
    """

    orig_w, orig_h = _check_image(image_bgr)
    in_w, in_h = input_size
    resized = image_bgr
    if (orig_w, orig_h) != (in_w, in_h):
        resized = cv2.resize(image_bgr, (in_w, in_h), interpolation=cv2.INTER_LINEAR)
    tensor = to_planar_tensor(resized, mean=mean, std=std, workers=workers)
    scale = min(in_w / orig_w, in_h / orig_h)
    return PreprocessResult(tensor=tensor, scale=scale, pad_left=0.0, pad_top=0.0, orig_size=(orig_w, orig_h))
