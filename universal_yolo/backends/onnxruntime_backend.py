from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ModelLoadError, UseAfterDisposeError


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)

DEVICE_PROVIDERS = {
    "cpu": ["CPUExecutionProvider"],
    "gpu": ["CUDAExecutionProvider", "CPUExecutionProvider"],
    "cuda": ["CUDAExecutionProvider", "CPUExecutionProvider"],
}


def providers_for_device(device: str) -> List[str]:
    key = device.strip().lower()
    if key not in DEVICE_PROVIDERS:
        raise ValueError(f"Unsupported device {device!r}; expected one of {sorted(DEVICE_PROVIDERS)}")
    return list(DEVICE_PROVIDERS[key])


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - device: "cpu" or "gpu"/"cuda"; ignored when `providers` is given
    - providers: explicit ORT execution providers
    - input_name/output_name: override auto-selected I/O names if needed
    """

    device: str = "cpu"
    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    Single-input, single-output ONNX Runtime session.

    Expects an NCHW float32 blob shaped (1, 3, H, W) and returns the selected output as NumPy.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        import onnxruntime as ort

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model file not found: {self.model_path}")

        providers = list(cfg.providers) if cfg.providers is not None else providers_for_device(cfg.device)
        available = set(ort.get_available_providers())
        usable = [p for p in providers if p in available]
        if not usable:
            raise ModelLoadError(f"None of the requested providers {providers} are available (have {sorted(available)}).")
        if len(usable) < len(providers):
            logger.warning("Providers not available, skipped: %s", [p for p in providers if p not in available])

        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=ort.SessionOptions(), providers=usable)
        except Exception as exc:
            raise ModelLoadError(f"Failed to load ONNX model: {self.model_path}") from exc

        inputs = self.session.get_inputs()
        outputs = self.session.get_outputs()
        self.input_name = cfg.input_name or inputs[0].name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or outputs[0].name
        self._input_meta = self._find(inputs, self.input_name, "input")
        self._output_meta = self._find(outputs, self.output_name, "output")

    @staticmethod
    def _find(metas, name: str, kind: str):
        for meta in metas:
            if meta.name == name:
                return meta
        raise ModelLoadError(f"{kind} name {name!r} not found. Available: {[m.name for m in metas]}")

    def _session(self):
        if self.session is None:
            raise UseAfterDisposeError("ONNX Runtime session has been closed.")
        return self.session

    @property
    def input_shape(self) -> Tuple[object, ...]:
        return tuple(self._input_meta.shape)

    @property
    def output_shape(self) -> Tuple[object, ...]:
        return tuple(self._output_meta.shape)

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self._session().get_providers())

    def infer(self, blob: np.ndarray) -> np.ndarray:
        outputs = self._session().run([self.output_name], {self.input_name: blob})
        return outputs[0]

    def close(self) -> None:
        # InferenceSession has no explicit release; dropping the reference frees it.
        self.session = None
