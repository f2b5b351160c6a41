from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .errors import OutputShapeError
from .geometry import clamp_xywh, cxcywh_to_xywh
from .labels import ClassMapping
from .types import Detection, PreprocessResult


RESCALE_MODES = ("letterbox", "ratio")


@dataclass(frozen=True)
class DecodeConfig:
    """
    Decoding options shared by both model kinds.

    rescale_mode:
      "letterbox" subtracts the letterbox padding and divides by the resize scale.
      "ratio" multiplies by original/input size per axis and ignores padding. This
      matches older exports of this tool and misplaces boxes on non-square images.
    """

    conf_threshold: float = 0.5
    rescale_mode: str = "letterbox"

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if self.rescale_mode not in RESCALE_MODES:
            raise ValueError(f"rescale_mode must be one of {RESCALE_MODES}, got {self.rescale_mode!r}")


def softmax(scores: np.ndarray) -> np.ndarray:
    """
    Numerically stable softmax over a 1-D score vector.
    """

    x = np.asarray(scores, dtype=np.float64)
    e = np.exp(x - np.max(x))
    return e / np.sum(e)


def to_probabilities(scores: np.ndarray, tolerance: float = 0.01) -> np.ndarray:
    """
    Return `scores` unchanged if they already sum to ~1, otherwise their softmax.
    """

    x = np.asarray(scores, dtype=np.float64)
    if abs(float(np.sum(x)) - 1.0) < tolerance:
        return x
    return softmax(x)


class DetectionDecoder:
    """
    Decode a (1, 4 + C, P) YOLO detection output into Detections in original image pixels.

    Rows 0..3 are cx, cy, w, h in model-input pixels, rows 4.. are per-class scores.
    Each prediction yields at most one Detection (arg-max class). Order follows the
    prediction index; run NMS afterwards.
    """

    def __init__(self, cfg: DecodeConfig, class_mapping: ClassMapping, num_classes: int):
        self.cfg = cfg
        self.class_mapping = class_mapping
        self.num_classes = int(num_classes)

    def decode(self, preds: np.ndarray, prep: PreprocessResult, input_size: Tuple[int, int]) -> List[Detection]:
        p = self._validate(preds)
        if p.shape[1] == 0:
            return []

        boxes = p[0:4, :].T
        class_scores = p[4:, :]
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(class_scores.shape[1])]

        keep = scores >= self.cfg.conf_threshold
        if not np.any(keep):
            return []
        boxes, scores, class_ids = boxes[keep], scores[keep], class_ids[keep]

        xywh = cxcywh_to_xywh(boxes)
        xywh = self._rescale(xywh, prep, input_size)
        xywh = clamp_xywh(xywh, prep.orig_size)

        return [
            Detection(
                x=float(x),
                y=float(y),
                width=float(w),
                height=float(h),
                confidence=float(score),
                class_id=int(cls_id),
                class_name=self.class_mapping.name_for(int(cls_id)),
            )
            for (x, y, w, h), score, cls_id in zip(xywh, scores, class_ids)
        ]

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _validate(self, preds: np.ndarray) -> np.ndarray:
        p = np.asarray(preds, dtype=np.float32)
        if p.ndim != 3:
            raise OutputShapeError(f"Detection output must be (1, 4+C, P), got shape {p.shape}.")
        if p.shape[0] != 1:
            raise OutputShapeError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        expected = 4 + self.num_classes
        if p.shape[1] != expected:
            raise OutputShapeError(f"Expected {expected} features (4 box + {self.num_classes} classes), got shape {p.shape}.")
        return p[0]

    def _rescale(self, xywh: np.ndarray, prep: PreprocessResult, input_size: Tuple[int, int]) -> np.ndarray:
        out = xywh.astype(np.float32).copy()
        if self.cfg.rescale_mode == "ratio":
            in_w, in_h = input_size
            orig_w, orig_h = prep.orig_size
            sx = orig_w / in_w
            sy = orig_h / in_h
            out[:, [0, 2]] *= sx
            out[:, [1, 3]] *= sy
            return out

        scale = prep.scale if prep.scale > 0 else 1.0
        out[:, 0] = (out[:, 0] - prep.pad_left) / scale
        out[:, 1] = (out[:, 1] - prep.pad_top) / scale
        out[:, 2] /= scale
        out[:, 3] /= scale
        return out


class ClassificationDecoder:
    """
    Decode a (1, C) classification output into a single whole-image Detection.
    """

    def __init__(self, class_mapping: ClassMapping, num_classes: int):
        self.class_mapping = class_mapping
        self.num_classes = int(num_classes)

    def decode(self, preds: np.ndarray, orig_size: Tuple[int, int]) -> Detection:
        p = np.asarray(preds, dtype=np.float64)
        if p.ndim != 2 or p.shape[0] != 1:
            raise OutputShapeError(f"Classification output must be (1, C), got shape {p.shape}.")
        if p.shape[1] == 0:
            raise OutputShapeError("Classification output has no class scores.")
        if p.shape[1] != self.num_classes:
            raise OutputShapeError(f"Expected {self.num_classes} class scores, got {p.shape[1]}.")

        probs = to_probabilities(p[0])
        class_id = int(np.argmax(probs))
        orig_w, orig_h = orig_size
        return Detection(
            x=0.0,
            y=0.0,
            width=float(orig_w),
            height=float(orig_h),
            confidence=float(probs[class_id]),
            class_id=class_id,
            class_name=self.class_mapping.name_for(class_id),
        )
