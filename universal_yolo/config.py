from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .introspect import DEFAULT_INPUT_SIZE
from .letterbox import IMAGENET_MEAN, IMAGENET_STD
from .postprocess import RESCALE_MODES, DecodeConfig


DEVICES = ("cpu", "gpu", "cuda")


@dataclass(frozen=True)
class ProcessorConfig:
    device: str = "cpu"
    conf_threshold: float = 0.5
    iou_threshold: float = 0.45
    rescale_mode: str = "letterbox"
    default_input_size: int = DEFAULT_INPUT_SIZE
    preprocess_workers: int = 1
    serialize_inference: bool = True
    classify_mean: Optional[Tuple[float, float, float]] = IMAGENET_MEAN
    classify_std: Optional[Tuple[float, float, float]] = IMAGENET_STD

    def __post_init__(self) -> None:
        if self.device.lower() not in DEVICES:
            raise ValueError(f"device must be one of {DEVICES}")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.rescale_mode not in RESCALE_MODES:
            raise ValueError(f"rescale_mode must be one of {RESCALE_MODES}")
        if self.default_input_size < 1:
            raise ValueError("default_input_size must be >= 1")
        if self.preprocess_workers < 1:
            raise ValueError("preprocess_workers must be >= 1")
        for name in ("classify_mean", "classify_std"):
            value = getattr(self, name)
            if value is not None and len(value) != 3:
                raise ValueError(f"{name} must have 3 values (R, G, B)")
        if self.classify_std is not None and any(v == 0 for v in self.classify_std):
            raise ValueError("classify_std values must be non-zero")

    def decode_config(self) -> DecodeConfig:
        return DecodeConfig(conf_threshold=self.conf_threshold, rescale_mode=self.rescale_mode)


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_triple(payload: Dict[str, Any], key: str) -> Optional[Tuple[float, float, float]]:
    value = payload[key]
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != 3:
        raise ValueError(f"{key} must be a list of 3 numbers or null")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
        raise ValueError(f"{key} must be a list of 3 numbers or null")
    return (float(value[0]), float(value[1]), float(value[2]))


def parse_processor_config(payload: Dict[str, Any]) -> ProcessorConfig:
    if not isinstance(payload, dict):
        raise ValueError("Processor config must be a JSON object")

    allowed = {f.name for f in fields(ProcessorConfig)}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown processor config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in payload:
        if key in ("device", "rescale_mode"):
            if not isinstance(payload[key], str) or not payload[key].strip():
                raise ValueError(f"{key} must be a non-empty string")
            kwargs[key] = payload[key].strip()
        elif key in ("conf_threshold", "iou_threshold"):
            kwargs[key] = _require_number(payload, key)
        elif key in ("default_input_size", "preprocess_workers"):
            kwargs[key] = _require_int(payload, key)
        elif key == "serialize_inference":
            if not isinstance(payload[key], bool):
                raise ValueError(f"{key} must be a boolean")
            kwargs[key] = payload[key]
        else:
            kwargs[key] = _optional_triple(payload, key)

    return ProcessorConfig(**kwargs)


def load_processor_config(path: Path) -> ProcessorConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Processor config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid processor config JSON: {path}") from exc
    return parse_processor_config(payload)
