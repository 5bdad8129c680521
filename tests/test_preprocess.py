import unittest

import numpy as np

from preprocess import contrast_factor, enhance, invert, to_luminance


class TestEnhance(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(7)
        self.image = rng.integers(0, 256, size=(40, 30, 4), dtype=np.uint8)

    def test_contrast_factor_for_default_contrast(self):
        self.assertAlmostEqual(contrast_factor(1.3), -8.216552, places=5)

    def test_deterministic(self):
        a = enhance(self.image)
        b = enhance(self.image)
        self.assertEqual(a.dtype, np.uint8)
        self.assertTrue(np.array_equal(a, b))

    def test_input_untouched_and_not_aliased(self):
        before = self.image.copy()
        out = enhance(self.image)
        self.assertTrue(np.array_equal(self.image, before))
        self.assertFalse(np.shares_memory(out, self.image))

    def test_gray_channels_equal_and_alpha_kept(self):
        out = enhance(self.image)
        self.assertTrue(np.array_equal(out[..., 0], out[..., 1]))
        self.assertTrue(np.array_equal(out[..., 1], out[..., 2]))
        self.assertTrue(np.array_equal(out[..., 3], self.image[..., 3]))

    def test_known_values(self):
        px = np.array([[[128, 128, 128, 255], [0, 0, 0, 10], [255, 255, 255, 20], [120, 120, 120, 30]]], dtype=np.uint8)
        out = enhance(px)
        self.assertEqual(out[0, 0, 0], 128)
        self.assertEqual(out[0, 1, 0], 255)
        self.assertEqual(out[0, 2, 0], 0)
        self.assertEqual(out[0, 3, 0], 194)
        self.assertEqual(list(out[0, :, 3]), [255, 10, 20, 30])

    def test_luminance_weights(self):
        # pure green: Y = 0.587 * 200 = 117.4
        px = np.array([[[0, 200, 0]]], dtype=np.uint8)
        expected = np.clip(np.rint(contrast_factor() * (117.4 - 128) + 128), 0, 255)
        self.assertEqual(enhance(px)[0, 0, 0], expected)

    def test_luminance_only_input(self):
        gray = self.image[..., 0].copy()
        out = enhance(gray)
        self.assertEqual(out.shape, gray.shape)

    def test_low_contrast_becomes_full_range(self):
        img = np.full((10, 10, 3), 110, dtype=np.uint8)
        img[:5] = 150
        out = enhance(img)
        self.assertEqual(out.min(), 0)
        self.assertEqual(out.max(), 255)


class TestHelpers(unittest.TestCase):
    def test_to_luminance_shapes(self):
        rgba = np.zeros((5, 6, 4), dtype=np.uint8)
        rgb = np.zeros((5, 6, 3), dtype=np.uint8)
        gray = np.zeros((5, 6), dtype=np.uint8)
        self.assertEqual(to_luminance(rgba).shape, (5, 6))
        self.assertEqual(to_luminance(rgb).shape, (5, 6))
        self.assertIs(to_luminance(gray), gray)

    def test_invert(self):
        gray = np.array([[0, 100, 255]], dtype=np.uint8)
        self.assertEqual(invert(gray).tolist(), [[255, 155, 0]])
        self.assertEqual(gray.tolist(), [[0, 100, 255]])


if __name__ == "__main__":
    unittest.main()
