class YoloError(Exception):
    """Base class for all universal_yolo errors."""


class ModelLoadError(YoloError, RuntimeError):
    """Raised when the model file is missing or the engine cannot load it."""


class LabelSourceError(YoloError, ValueError):
    """Raised when the label file is missing or malformed."""


class UnsupportedModelError(YoloError):
    """Raised when processing is requested for a model of unknown kind."""


class ImageDecodeError(YoloError, ValueError):
    """Raised when an image file cannot be read or decoded."""


class UseAfterDisposeError(YoloError, RuntimeError):
    """Raised when a processor is used after close()."""


class OutputShapeError(YoloError, ValueError):
    """Raised when an output tensor does not match the introspected layout."""
