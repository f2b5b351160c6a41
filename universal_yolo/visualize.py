from __future__ import annotations

from pathlib import Path
from typing import Iterable, Tuple, Union

import cv2
import numpy as np

from .image_io import read_image
from .types import Detection


PathLike = Union[str, Path]

# BGR
_PALETTE = [
    (0, 0, 255),
    (0, 255, 0),
    (255, 0, 0),
    (0, 255, 255),
    (255, 0, 255),
    (255, 255, 0),
    (128, 0, 128),
    (0, 165, 255),
    (0, 128, 0),
    (0, 128, 128),
]


def color_for_class_id(class_id: int) -> Tuple[int, int, int]:
    return _PALETTE[int(class_id) % len(_PALETTE)]


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.6,
    font_thickness: int = 2,
) -> np.ndarray:
    """
    Draw boxes with a filled "name: score" tab on their top edge. Returns a copy.

    Coordinates are truncated to ints. The label baseline sits 5px above the box corner and
    the tab pads the text by 5px; a tab that would leave the image is pushed down to row 0.
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        x, y, bw, bh = (int(v) for v in det.as_xywh())
        color = color_for_class_id(det.class_id)
        cv2.rectangle(out, (x, y), (x + bw - 1, y + bh - 1), color, box_thickness)

        label = f"{det.class_name}: {det.confidence:.2f}" if show_score else det.class_name
        (tw, th), baseline = cv2.getTextSize(label, font, font_scale, font_thickness)
        tab_top = y - th - baseline - 5
        shift = max(0, -tab_top)
        cv2.rectangle(
            out,
            (x, tab_top + shift),
            (x + tw + 9, tab_top + shift + th + baseline + 9),
            color,
            cv2.FILLED,
        )
        cv2.putText(out, label, (x + 5, y - 5 + shift), font, font_scale, (255, 255, 255), font_thickness)

    return out


def save_detections(image_path: PathLike, detections: Iterable[Detection], output_path: PathLike) -> Path:
    """
    Draw `detections` over the image at `image_path` and write the result to `output_path`.
    """

    vis = draw_detections(read_image(image_path), detections)
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    ok, encoded = cv2.imencode(out.suffix or ".png", vis)
    if not ok:
        raise RuntimeError(f"Failed to encode output image: {out}")
    encoded.tofile(str(out))
    return out
