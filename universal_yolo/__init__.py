"""
Model-adaptive YOLO inference for ONNX exports.

Reads the model's tensor shapes once to tell classification from detection, then
letterboxes images, decodes raw outputs and applies greedy IoU suppression. Everything
outside the ONNX Runtime backend works on plain NumPy arrays.
"""

from .types import Detection, ModelInfo, ModelKind, PreprocessResult
from .errors import (
    ImageDecodeError,
    LabelSourceError,
    ModelLoadError,
    OutputShapeError,
    UnsupportedModelError,
    UseAfterDisposeError,
    YoloError,
)
from .geometry import iou_xywh, iou_xyxy
from .letterbox import letterbox, preprocess_classification, preprocess_letterbox
from .introspect import inspect_model
from .labels import ClassMapping, load_class_mapping
from .nms import NMSConfig, nms, suppress
from .postprocess import ClassificationDecoder, DecodeConfig, DetectionDecoder, softmax, to_probabilities
from .config import ProcessorConfig, load_processor_config
from .processor import ProcessorState, UniversalYoloProcessor, load_processor, resolve_path
from .visualize import draw_detections, save_detections
from .batch import BatchReport, ImageResult, find_images, run_batch

__all__ = [
    "Detection",
    "ModelInfo",
    "ModelKind",
    "PreprocessResult",
    "YoloError",
    "ModelLoadError",
    "LabelSourceError",
    "UnsupportedModelError",
    "ImageDecodeError",
    "UseAfterDisposeError",
    "OutputShapeError",
    "iou_xyxy",
    "iou_xywh",
    "letterbox",
    "preprocess_letterbox",
    "preprocess_classification",
    "inspect_model",
    "ClassMapping",
    "load_class_mapping",
    "NMSConfig",
    "nms",
    "suppress",
    "DecodeConfig",
    "DetectionDecoder",
    "ClassificationDecoder",
    "softmax",
    "to_probabilities",
    "ProcessorConfig",
    "load_processor_config",
    "ProcessorState",
    "UniversalYoloProcessor",
    "load_processor",
    "resolve_path",
    "draw_detections",
    "save_detections",
    "BatchReport",
    "ImageResult",
    "find_images",
    "run_batch",
]
