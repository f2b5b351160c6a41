from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Detection:
    """
    A single result in original image pixels (top-left origin, xywh).

    Classification models produce one Detection whose box spans the whole image.
    """

    x: float
    y: float
    width: float
    height: float
    confidence: float
    class_id: int
    class_name: str

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


class ModelKind(enum.Enum):
    CLASSIFICATION = "classification"
    DETECTION = "detection"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ModelInfo:
    kind: ModelKind
    input_width: int
    input_height: int
    num_classes: int
    description: str
    input_shape: Tuple[object, ...] = ()
    output_shape: Tuple[object, ...] = ()


@dataclass(frozen=True)
class PreprocessResult:
    """
    Model input plus the bookkeeping needed to map boxes back.

    tensor: float32 (1, 3, H, W)
    scale: resize factor applied to the original image
    pad_left/pad_top: letterbox padding in model-input pixels
    orig_size: (width, height) of the original image
    """

    tensor: np.ndarray
    scale: float
    pad_left: float
    pad_top: float
    orig_size: Tuple[int, int]
