import argparse
import dataclasses
import logging
from pathlib import Path

from universal_yolo import ModelKind, ProcessorConfig, find_images, load_processor, load_processor_config, run_batch
from universal_yolo.log import configure_logging


logger = logging.getLogger("run_universal_yolo")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO classification/detection ONNX model over images.")
    parser.add_argument("--model", default="models/best.onnx", help="Path to the ONNX model.")
    parser.add_argument("--labels", default="classes.yaml", help="Path to the YAML label file.")
    parser.add_argument("--images", required=True, help="Image file or directory of images.")
    parser.add_argument("--out-dir", default=None, help="Write annotated detection images here.")
    parser.add_argument("--config", default=None, help="Optional JSON processor config; CLI flags override it.")
    parser.add_argument("--device", default=None, choices=["cpu", "gpu", "cuda"], help="Inference device.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument(
        "--rescale",
        default=None,
        choices=["letterbox", "ratio"],
        help="How boxes are mapped back to the original image (ratio = legacy behavior).",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines.")
    args = parser.parse_args()

    configure_logging(args.log_level, json_logs=args.json_logs)

    cfg = load_processor_config(Path(args.config)) if args.config else ProcessorConfig()
    overrides = {
        "device": args.device,
        "conf_threshold": args.conf,
        "iou_threshold": args.iou,
        "rescale_mode": args.rescale,
    }
    cfg = dataclasses.replace(cfg, **{k: v for k, v in overrides.items() if v is not None})

    images = Path(args.images)
    image_paths = find_images(images) if images.is_dir() else [images]
    if not image_paths:
        logger.error("No supported images found in %s", images)
        return 1

    with load_processor(args.model, args.labels, cfg) as processor:
        report = run_batch(processor, image_paths, out_dir=args.out_dir)
        for result in report.results:
            if not result.ok:
                print(f"{result.path.name}: FAILED ({result.error})")
                continue
            if processor.model_info.kind is ModelKind.CLASSIFICATION:
                top = result.detections[0]
                print(f"{result.path.name}: {top.class_name} ({top.confidence:.3f})")
                continue
            print(f"{result.path.name}: {len(result.detections)} object(s)")
            for det in result.detections:
                print(f"  - {det.class_name}: {det.confidence:.3f} [{det.x:.0f}, {det.y:.0f}, {det.width:.0f}, {det.height:.0f}]")

    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
