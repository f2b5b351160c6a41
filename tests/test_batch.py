import tempfile
import unittest
from pathlib import Path
from unittest import mock

import cv2
import numpy as np

from tests.fakes import NAMES, FakeBackend
from universal_yolo.batch import find_images, run_batch
from universal_yolo.errors import UnsupportedModelError, UseAfterDisposeError
from universal_yolo.processor import UniversalYoloProcessor
from universal_yolo.visualize import color_for_class_id, draw_detections, save_detections
from universal_yolo.types import Detection


_DETECTION_OUTPUT = np.array([[32, 32, 16, 16, 0.9, 0.0]], dtype=np.float32).T[None, ...]


class FailingOnceBackend(FakeBackend):
    """Engine error on the first call only."""

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if not self.blobs:
            self.blobs.append(blob)
            raise RuntimeError("engine failed")
        return super().infer(blob)


def _detection_processor():
    return UniversalYoloProcessor(FakeBackend((1, 3, 64, 64), (1, 6, 1), _DETECTION_OUTPUT), NAMES)


def _classification_processor():
    output = np.array([[0.2, 0.8]], dtype=np.float32)
    return UniversalYoloProcessor(FakeBackend((1, 3, 32, 32), (1, 2), output), NAMES)


class TestFindImages(unittest.TestCase):
    def test_filters_and_sorts_by_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for name in ("b.jpg", "a.PNG", "c.tif", "notes.txt", "d.jpeg"):
                (root / name).write_bytes(b"")
            (root / "nested.jpg").mkdir()
            self.assertEqual([p.name for p in find_images(root)], ["a.PNG", "b.jpg", "c.tif", "d.jpeg"])

    def test_missing_directory(self) -> None:
        with self.assertRaises(FileNotFoundError):
            find_images("/definitely/not/here")


class TestRunBatch(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.good = []
        for name in ("a.png", "c.png"):
            path = self.root / name
            cv2.imwrite(str(path), np.full((64, 64, 3), 200, dtype=np.uint8))
            self.good.append(path)
        self.bad = self.root / "b.png"
        self.bad.write_bytes(b"garbage")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_bad_image_does_not_stop_the_batch(self) -> None:
        with _detection_processor() as proc:
            report = run_batch(proc, find_images(self.root))
        self.assertEqual([r.path.name for r in report.results], ["a.png", "b.png", "c.png"])
        self.assertEqual(report.succeeded, 2)
        self.assertEqual(report.failed, 1)
        self.assertIsNotNone(report.results[1].error)
        self.assertEqual(len(report.results[0].detections), 1)
        self.assertGreaterEqual(report.elapsed_s, 0.0)

    def test_detection_results_are_drawn(self) -> None:
        out_dir = self.root / "out"
        with _detection_processor() as proc:
            report = run_batch(proc, self.good, out_dir=out_dir)
        for result in report.results:
            self.assertEqual(result.output_path, out_dir / f"result_{result.path.name}")
            self.assertTrue(result.output_path.is_file())
            self.assertIsNotNone(cv2.imread(str(result.output_path)))

    def test_classification_results_are_not_drawn(self) -> None:
        out_dir = self.root / "out"
        with _classification_processor() as proc:
            report = run_batch(proc, self.good, out_dir=out_dir)
        self.assertEqual([r.detections[0].class_name for r in report.results], ["dog", "dog"])
        self.assertFalse(out_dir.exists())

    def test_engine_failure_is_isolated_to_its_image(self) -> None:
        backend = FailingOnceBackend((1, 3, 64, 64), (1, 6, 1), _DETECTION_OUTPUT)
        with UniversalYoloProcessor(backend, NAMES) as proc:
            report = run_batch(proc, self.good)
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.succeeded, 1)
        self.assertIn("engine failed", report.results[0].error)
        self.assertEqual(len(report.results[1].detections), 1)

    def test_malformed_output_is_isolated_to_its_image(self) -> None:
        backend = FakeBackend((1, 3, 64, 64), (1, 6, 1), np.zeros((1, 9, 1), dtype=np.float32))
        with UniversalYoloProcessor(backend, NAMES) as proc:
            report = run_batch(proc, self.good)
        self.assertEqual(report.failed, 2)
        self.assertTrue(all("OutputShapeError" in r.error for r in report.results))

    def test_render_failure_keeps_detections(self) -> None:
        out_dir = self.root / "out"
        with _detection_processor() as proc:
            with mock.patch("universal_yolo.batch.save_detections", side_effect=[RuntimeError("disk full"), None]):
                report = run_batch(proc, self.good, out_dir=out_dir)
        self.assertEqual(report.failed, 1)
        self.assertIn("disk full", report.results[0].error)
        self.assertEqual(len(report.results[0].detections), 1)
        self.assertTrue(report.results[1].ok)

    def test_unsupported_model_aborts(self) -> None:
        proc = UniversalYoloProcessor(FakeBackend((1, 3, 64, 64), (1, 3, 80, 80, 85)), NAMES)
        with self.assertRaises(UnsupportedModelError):
            run_batch(proc, self.good)

    def test_closed_processor_aborts(self) -> None:
        proc = _detection_processor()
        proc.close()
        with self.assertRaises(UseAfterDisposeError):
            run_batch(proc, self.good)


class TestDrawDetections(unittest.TestCase):
    def test_draws_on_copy(self) -> None:
        img = np.zeros((50, 80, 3), dtype=np.uint8)
        det = Detection(x=10, y=20, width=30, height=20, confidence=0.75, class_id=1, class_name="dog")
        out = draw_detections(img, [det])
        self.assertEqual(out.shape, img.shape)
        self.assertFalse(np.any(img))
        self.assertTrue(np.any(out))

    def test_box_and_label_tab_layout(self) -> None:
        img = np.zeros((80, 100, 3), dtype=np.uint8)
        det = Detection(x=10.7, y=40.2, width=30.0, height=20.0, confidence=0.75, class_id=1, class_name="dog")
        out = draw_detections(img, [det])
        color = list(color_for_class_id(1))
        # Right edge of the box at x + w - 1, interior untouched.
        self.assertEqual(out[50, 39].tolist(), color)
        self.assertEqual(out[50, 25].tolist(), [0, 0, 0])
        # Filled tab above the top-left corner, left of the text.
        self.assertEqual(out[36, 13].tolist(), color)
        self.assertEqual(out[30, 13].tolist(), color)

    def test_label_tab_stays_inside_at_top_edge(self) -> None:
        img = np.zeros((60, 100, 3), dtype=np.uint8)
        det = Detection(x=10, y=0, width=40, height=40, confidence=0.5, class_id=0, class_name="cat")
        out = draw_detections(img, [det])
        self.assertEqual(out[8, 13].tolist(), list(color_for_class_id(0)))

    def test_save_creates_parent_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "in.png"
            cv2.imwrite(str(src), np.zeros((40, 40, 3), dtype=np.uint8))
            det = Detection(x=5, y=5, width=10, height=10, confidence=0.5, class_id=0, class_name="cat")
            dst = save_detections(src, [det], Path(tmp) / "deep" / "dir" / "out.png")
            self.assertTrue(dst.is_file())


if __name__ == "__main__":
    unittest.main()
