from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import ImageDecodeError, UnsupportedModelError, UseAfterDisposeError
from .processor import UniversalYoloProcessor
from .types import Detection, ModelKind
from .visualize import save_detections


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp")


@dataclass
class ImageResult:
    path: Path
    detections: List[Detection] = field(default_factory=list)
    error: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    results: List[ImageResult]
    elapsed_s: float

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def find_images(directory: PathLike) -> List[Path]:
    """
    Supported image files directly inside `directory`, sorted by file name.
    """

    d = Path(directory)
    if not d.is_dir():
        raise FileNotFoundError(f"Image directory not found: {d}")
    files = [p for p in d.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_IMAGE_EXTENSIONS]
    return sorted(files, key=lambda p: p.name)


def run_batch(
    processor: UniversalYoloProcessor,
    image_paths: Iterable[PathLike],
    out_dir: Optional[PathLike] = None,
) -> BatchReport:
    """
    Process images one at a time. Any failure on one image (unreadable file, engine
    error, malformed output, failed render) is logged and recorded on its ImageResult,
    and the loop moves on. An unsupported model or a closed processor aborts the run.

    With `out_dir`, detection results are drawn to `out_dir/result_<name>`. Classification
    results have no boxes worth drawing and are only reported.
    """

    draw = out_dir is not None and processor.model_info.kind is ModelKind.DETECTION
    results: List[ImageResult] = []
    start = time.perf_counter()

    for raw_path in image_paths:
        path = Path(raw_path)
        try:
            detections = processor.process(path)
        except (UnsupportedModelError, UseAfterDisposeError):
            raise
        except ImageDecodeError as exc:
            logger.warning("Skipping %s: %s", path.name, exc)
            results.append(ImageResult(path=path, error=str(exc)))
            continue
        except Exception as exc:
            logger.exception("Failed to process %s", path.name)
            results.append(ImageResult(path=path, error=f"{type(exc).__name__}: {exc}"))
            continue

        result = ImageResult(path=path, detections=detections)
        logger.info("%s: %d result(s)", path.name, len(detections))
        for det in detections:
            logger.debug(
                "  %s %.3f [%.0f, %.0f, %.0f, %.0f]",
                det.class_name,
                det.confidence,
                det.x,
                det.y,
                det.width,
                det.height,
            )

        if draw and detections:
            try:
                result.output_path = save_detections(path, detections, Path(out_dir) / f"result_{path.name}")
            except Exception as exc:
                logger.exception("Failed to draw results for %s", path.name)
                result.error = f"{type(exc).__name__}: {exc}"
        results.append(result)

    elapsed = time.perf_counter() - start
    report = BatchReport(results=results, elapsed_s=elapsed)
    logger.info(
        "Processed %d image(s) in %.2fs (%d ok, %d failed)",
        len(results),
        elapsed,
        report.succeeded,
        report.failed,
    )
    return report
