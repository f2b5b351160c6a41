from __future__ import annotations

import enum
import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from .backends import InferenceBackend
from .config import ProcessorConfig
from .errors import UnsupportedModelError, UseAfterDisposeError
from .image_io import read_image
from .introspect import inspect_model
from .labels import ClassMapping, load_class_mapping
from .letterbox import preprocess_classification, preprocess_letterbox
from .nms import suppress
from .postprocess import ClassificationDecoder, DetectionDecoder
from .types import Detection, ModelInfo, ModelKind, PreprocessResult


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def resolve_path(path: PathLike, base_dir: Optional[PathLike] = None) -> Path:
    """Expand `~` and anchor a relative path at `base_dir` (the working directory by default)."""

    p = Path(path).expanduser()
    if not p.is_absolute():
        p = Path(base_dir if base_dir is not None else Path.cwd()) / p
    return p.resolve()


class ProcessorState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


class UniversalYoloProcessor:
    """
    Preprocess -> inference -> decode (-> NMS) for classification and detection YOLO models.

    The model kind is read once from the backend's tensor shapes at construction and
    decides which preprocessing/decoding path every `process` call takes. Images are BGR
    (OpenCV-style); results are Detections in original image pixels.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        class_mapping: ClassMapping,
        config: ProcessorConfig = ProcessorConfig(),
    ):
        self.state = ProcessorState.UNINITIALIZED
        self._backend: Optional[InferenceBackend] = backend
        self.class_mapping = class_mapping
        self.config = config
        # ORT sessions may be shared between threads, but other engines may not.
        self._lock = threading.Lock() if config.serialize_inference else None

        self._model_info = inspect_model(
            backend.input_shape,
            backend.output_shape,
            num_labels=len(class_mapping),
            default_input_size=config.default_input_size,
        )
        self._detection_decoder = DetectionDecoder(config.decode_config(), class_mapping, self._model_info.num_classes)
        self._classification_decoder = ClassificationDecoder(class_mapping, self._model_info.num_classes)
        self.state = ProcessorState.READY

        info = self._model_info
        logger.info(
            "Model analysis: type=%s input=%dx%d classes=%d (%s)",
            info.kind.value,
            info.input_width,
            info.input_height,
            info.num_classes,
            info.description,
        )
        if info.kind is ModelKind.DETECTION and class_mapping and len(class_mapping) != info.num_classes:
            logger.warning("Label file has %d classes but the model outputs %d.", len(class_mapping), info.num_classes)

    @property
    def model_info(self) -> ModelInfo:
        return self._model_info

    @property
    def input_size(self):
        return self._model_info.input_width, self._model_info.input_height

    def _check_ready(self) -> InferenceBackend:
        if self.state is ProcessorState.DISPOSED or self._backend is None:
            raise UseAfterDisposeError("Processor has been closed.")
        return self._backend

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        self._check_ready()
        if self._model_info.kind is ModelKind.CLASSIFICATION:
            return preprocess_classification(
                image_bgr,
                self.input_size,
                mean=self.config.classify_mean,
                std=self.config.classify_std,
                workers=self.config.preprocess_workers,
            )
        return preprocess_letterbox(image_bgr, self.input_size, workers=self.config.preprocess_workers)

    def _infer(self, blob: np.ndarray) -> np.ndarray:
        backend = self._check_ready()
        if self._lock is None:
            return backend.infer(blob)
        with self._lock:
            return backend.infer(blob)

    def process_image(self, image_bgr: np.ndarray) -> List[Detection]:
        self._check_ready()
        kind = self._model_info.kind
        if kind is ModelKind.UNKNOWN:
            raise UnsupportedModelError(f"Unsupported model type: {self._model_info.description}")

        prep = self.preprocess(image_bgr)
        preds = self._infer(prep.tensor)

        if kind is ModelKind.CLASSIFICATION:
            return [self._classification_decoder.decode(preds, prep.orig_size)]

        candidates = self._detection_decoder.decode(preds, prep, self.input_size)
        return suppress(candidates, self.config.iou_threshold)

    def process(self, image_path: PathLike) -> List[Detection]:
        """
        Decode the image at `image_path` and run it through the model.

        Raises ImageDecodeError for unreadable files (safe to skip in a batch) and
        UnsupportedModelError for models of unknown kind.
        """

        self._check_ready()
        if self._model_info.kind is ModelKind.UNKNOWN:
            raise UnsupportedModelError(f"Unsupported model type: {self._model_info.description}")
        return self.process_image(read_image(image_path))

    __call__ = process_image

    def close(self) -> None:
        if self.state is ProcessorState.DISPOSED:
            return
        backend, self._backend = self._backend, None
        self.state = ProcessorState.DISPOSED
        if backend is not None:
            backend.close()

    def __enter__(self) -> "UniversalYoloProcessor":
        self._check_ready()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def load_processor(
    model_path: PathLike,
    labels_path: PathLike,
    config: ProcessorConfig = ProcessorConfig(),
    *,
    base_dir: Optional[PathLike] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> UniversalYoloProcessor:
    """
    Create a processor for an ONNX model and YAML label file on disk.

        with load_processor("models/best.onnx", "classes.yaml") as proc:
            detections = proc.process("images/a.jpg")

    Labels are loaded before the model so a bad label file fails fast.
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    class_mapping = load_class_mapping(resolve_path(labels_path, base_dir=base_dir))
    backend = OnnxRuntimeBackend(
        resolve_path(model_path, base_dir=base_dir),
        OnnxRuntimeBackendConfig(
            device=config.device,
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    return UniversalYoloProcessor(backend, class_mapping, config)
