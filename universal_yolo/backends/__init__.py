"""
Inference backends for universal_yolo.

The processor only talks to the `InferenceBackend` protocol, so pre/post-processing
stays usable (and testable) without an inference runtime installed.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np


class InferenceBackend(Protocol):
    input_name: str
    output_name: str

    @property
    def input_shape(self) -> Sequence[object]: ...

    @property
    def output_shape(self) -> Sequence[object]: ...

    def infer(self, blob: np.ndarray) -> np.ndarray: ...

    def close(self) -> None: ...


__all__ = ["InferenceBackend"]
