import unittest

import numpy as np

from universal_yolo.letterbox import (
    IMAGENET_MEAN,
    IMAGENET_STD,
    letterbox,
    preprocess_classification,
    preprocess_letterbox,
    to_planar_tensor,
)


class TestLetterbox(unittest.TestCase):
    def test_wide_image_is_padded_top_and_bottom(self) -> None:
        img = np.full((100, 200, 3), 255, dtype=np.uint8)
        prep = preprocess_letterbox(img, (640, 640))

        self.assertEqual(prep.tensor.shape, (1, 3, 640, 640))
        self.assertEqual(prep.tensor.dtype, np.float32)
        self.assertAlmostEqual(prep.scale, 3.2)
        self.assertEqual(prep.pad_left, 0.0)
        self.assertEqual(prep.pad_top, 160.0)
        self.assertEqual(prep.orig_size, (200, 100))

        gray = 114 / 255.0
        self.assertTrue(np.allclose(prep.tensor[0, :, :160, :], gray))
        self.assertTrue(np.allclose(prep.tensor[0, :, 480:, :], gray))
        self.assertTrue(np.allclose(prep.tensor[0, :, 160:480, :], 1.0))

    def test_aspect_ratio_preserved_within_target(self) -> None:
        for w, h, target in [(200, 100, (640, 640)), (37, 91, (320, 256)), (640, 480, (640, 640)), (10, 10, (64, 32))]:
            img = np.zeros((h, w, 3), dtype=np.uint8)
            padded, scale, (dw, dh) = letterbox(img, new_shape=target)
            self.assertEqual(padded.shape, (target[1], target[0], 3))

            new_w = target[0] - 2 * dw
            new_h = target[1] - 2 * dh
            self.assertLessEqual(new_w, target[0])
            self.assertLessEqual(new_h, target[1])
            # Rounding to whole pixels moves the ratio by at most one pixel on either side.
            self.assertAlmostEqual(new_w / new_h, w / h, delta=(w / h) * (1.0 / min(new_w, new_h)) * 2)
            self.assertAlmostEqual(scale, min(target[0] / w, target[1] / h))

    def test_odd_padding_fills_canvas_exactly(self) -> None:
        img = np.zeros((60, 100, 3), dtype=np.uint8)
        padded, scale, (dw, dh) = letterbox(img, new_shape=(64, 64))
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertEqual(dw, 0.0)
        self.assertEqual(dh, 13.0)

    def test_channel_order_is_rgb(self) -> None:
        img = np.zeros((32, 32, 3), dtype=np.uint8)
        img[:, :, 0] = 255  # blue in BGR
        prep = preprocess_letterbox(img, (32, 32))
        self.assertTrue(np.allclose(prep.tensor[0, 0], 0.0))
        self.assertTrue(np.allclose(prep.tensor[0, 1], 0.0))
        self.assertTrue(np.allclose(prep.tensor[0, 2], 1.0))

    def test_deterministic_and_parallel_rows_match(self) -> None:
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, size=(123, 77, 3), dtype=np.uint8)
        a = preprocess_letterbox(img, (96, 96))
        b = preprocess_letterbox(img, (96, 96))
        c = preprocess_letterbox(img, (96, 96), workers=4)
        self.assertTrue(np.array_equal(a.tensor, b.tensor))
        self.assertTrue(np.array_equal(a.tensor, c.tensor))
        self.assertEqual((a.scale, a.pad_left, a.pad_top), (c.scale, c.pad_left, c.pad_top))

    def test_more_workers_than_rows(self) -> None:
        img = np.full((3, 5, 3), 10, dtype=np.uint8)
        single = to_planar_tensor(img)
        many = to_planar_tensor(img, workers=16)
        self.assertEqual(many.shape, (1, 3, 3, 5))
        self.assertTrue(np.array_equal(single, many))

    def test_rejects_non_bgr_input(self) -> None:
        with self.assertRaises(ValueError):
            preprocess_letterbox(np.zeros((10, 10), dtype=np.uint8), (32, 32))
        with self.assertRaises(TypeError):
            preprocess_letterbox(None, (32, 32))


class TestClassificationPreprocess(unittest.TestCase):
    def test_stretch_resize_and_normalize(self) -> None:
        img = np.full((30, 50, 3), 255, dtype=np.uint8)
        prep = preprocess_classification(img, (16, 16))
        self.assertEqual(prep.tensor.shape, (1, 3, 16, 16))
        self.assertEqual((prep.pad_left, prep.pad_top), (0.0, 0.0))
        for ch in range(3):
            expected = (1.0 - IMAGENET_MEAN[ch]) / IMAGENET_STD[ch]
            self.assertTrue(np.allclose(prep.tensor[0, ch], expected, atol=1e-5))

    def test_normalization_can_be_disabled(self) -> None:
        img = np.full((8, 8, 3), 51, dtype=np.uint8)
        prep = preprocess_classification(img, (8, 8), mean=None, std=None)
        self.assertTrue(np.allclose(prep.tensor, 0.2))


if __name__ == "__main__":
    unittest.main()
