from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


Box = Sequence[float]


def xywh_to_xyxy(box: Box) -> Tuple[float, float, float, float]:
    x, y, w, h = box
    return float(x), float(y), float(x + w), float(y + h)


def cxcywh_to_xywh(boxes: np.ndarray) -> np.ndarray:
    """
    Convert (N, 4) center boxes [cx, cy, w, h] to top-left boxes [x, y, w, h].
    """

    boxes = np.asarray(boxes, dtype=np.float32)
    out = boxes.copy()
    out[:, 0] = boxes[:, 0] - boxes[:, 2] / 2
    out[:, 1] = boxes[:, 1] - boxes[:, 3] / 2
    return out


def clamp_xywh(boxes: np.ndarray, orig_size: Tuple[int, int]) -> np.ndarray:
    """
    Clamp (N, 4) xywh boxes so x/y stay inside the image and the box does not run past its edges.
    """

    orig_w, orig_h = orig_size
    out = np.asarray(boxes, dtype=np.float32).copy()
    out[:, 0] = np.clip(out[:, 0], 0, orig_w - 1)
    out[:, 1] = np.clip(out[:, 1], 0, orig_h - 1)
    out[:, 2] = np.clip(out[:, 2], 0, orig_w - out[:, 0])
    out[:, 3] = np.clip(out[:, 3], 0, orig_h - out[:, 1])
    return out


def iou_xyxy(a: Box, b: Box) -> float:
    """
    Intersection over union of two xyxy boxes. Returns 0.0 for disjoint boxes.
    """

    x1 = max(a[0], b[0])
    y1 = max(a[1], b[1])
    x2 = min(a[2], b[2])
    y2 = min(a[3], b[3])
    if x2 <= x1 or y2 <= y1:
        return 0.0

    inter = (x2 - x1) * (y2 - y1)
    area_a = (a[2] - a[0]) * (a[3] - a[1])
    area_b = (b[2] - b[0]) * (b[3] - b[1])
    union = area_a + area_b - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def iou_xywh(a: Box, b: Box) -> float:
    return iou_xyxy(xywh_to_xyxy(a), xywh_to_xyxy(b))


def iou_one_to_many(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """
    Vectorized IoU of one xyxy box against (N, 4) xyxy boxes.
    """

    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[2], others[:, 2])
    yy2 = np.minimum(box[3], others[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area + areas - inter
    safe_union = np.where(union > 0, union, 1.0)
    return np.where(union > 0, inter / safe_union, 0.0)
