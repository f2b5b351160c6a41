from __future__ import annotations

from typing import Optional, Sequence

from .types import ModelInfo, ModelKind


DEFAULT_INPUT_SIZE = 640


def _static_dim(value: object) -> Optional[int]:
    """
    ONNX Runtime reports dynamic axes as strings (e.g. "batch") or None; only positive ints are usable.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return int(value)
    return None


def _format_shape(shape: Sequence[object]) -> str:
    return "[" + ", ".join(str(d) for d in shape) + "]"


def inspect_model(
    input_shape: Sequence[object],
    output_shape: Sequence[object],
    num_labels: int = 0,
    default_input_size: int = DEFAULT_INPUT_SIZE,
) -> ModelInfo:
    """
    Classify a model from its first input/output shapes.

    - input (batch, channels, height, width) gives the input resolution
    - output (batch, C)      -> classification with C classes
    - output (batch, 4+C, P) -> detection with C classes and P predictions
    - anything else          -> unknown; num_classes falls back to `num_labels`
    """

    input_shape = tuple(input_shape)
    output_shape = tuple(output_shape)

    input_height = default_input_size
    input_width = default_input_size
    if len(input_shape) >= 4:
        input_height = _static_dim(input_shape[2]) or default_input_size
        input_width = _static_dim(input_shape[3]) or default_input_size

    def _unknown(reason: str) -> ModelInfo:
        return ModelInfo(
            kind=ModelKind.UNKNOWN,
            input_width=input_width,
            input_height=input_height,
            num_classes=num_labels,
            description=f"Unknown model type ({reason}), output shape: {_format_shape(output_shape)}",
            input_shape=input_shape,
            output_shape=output_shape,
        )

    if len(output_shape) == 2:
        num_classes = _static_dim(output_shape[1])
        if num_classes is None:
            return _unknown("dynamic class dimension")
        return ModelInfo(
            kind=ModelKind.CLASSIFICATION,
            input_width=input_width,
            input_height=input_height,
            num_classes=num_classes,
            description=f"YOLO classification model, outputs {num_classes} classes",
            input_shape=input_shape,
            output_shape=output_shape,
        )

    if len(output_shape) == 3:
        features = _static_dim(output_shape[1])
        if features is None:
            return _unknown("dynamic feature dimension")
        if features <= 4:
            return _unknown(f"{features} features leaves no class scores")
        num_classes = features - 4
        predictions = output_shape[2]
        return ModelInfo(
            kind=ModelKind.DETECTION,
            input_width=input_width,
            input_height=input_height,
            num_classes=num_classes,
            description=f"YOLO detection model, outputs {predictions} predictions, {num_classes} classes",
            input_shape=input_shape,
            output_shape=output_shape,
        )

    return _unknown(f"rank {len(output_shape)}")
