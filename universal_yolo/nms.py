from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .geometry import iou_one_to_many
from .types import Detection


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    # None keeps every survivor.
    max_detections: Optional[int] = None


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy class-agnostic NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Candidates whose IoU with a kept box is strictly above the threshold are dropped.
    Equal scores keep their input order.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        iou = iou_one_to_many(boxes[i], boxes[rest])
        order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def suppress(detections: Sequence[Detection], iou_threshold: float, max_detections: Optional[int] = None) -> List[Detection]:
    """
    Run `nms` over Detection objects and return the survivors sorted by confidence.
    """

    if not detections:
        return []

    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64)
    scores = np.array([d.confidence for d in detections], dtype=np.float64)
    keep = nms(boxes, scores, NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections))
    return [detections[int(i)] for i in keep]
