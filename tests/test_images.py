import base64
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np
import requests
from PIL import Image

from images import ImageLoadError, load_image
from qr_fixtures import png_bytes


class TestLoadImage(unittest.TestCase):
    def setUp(self):
        self.image = np.zeros((8, 6, 4), dtype=np.uint8)
        self.image[..., 0] = 200
        self.image[..., 3] = 255
        self.png = png_bytes(self.image)
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "qr.png"
        self.path.write_bytes(self.png)

    def assertSameImage(self, arr):
        self.assertEqual(arr.shape, (8, 6, 4))
        self.assertTrue(np.array_equal(arr, self.image))

    def test_path_and_string(self):
        self.assertSameImage(load_image(self.path))
        self.assertSameImage(load_image(str(self.path)))

    def test_file_uri(self):
        self.assertSameImage(load_image(self.path.as_uri()))

    def test_bytes(self):
        self.assertSameImage(load_image(self.png))

    def test_data_uri(self):
        uri = "data:image/png;base64," + base64.b64encode(self.png).decode()
        self.assertSameImage(load_image(uri))

    def test_array_is_copied(self):
        out = load_image(self.image)
        self.assertFalse(np.shares_memory(out, self.image))

    def test_pil_image_converted_to_rgba(self):
        out = load_image(Image.new("RGB", (4, 3), (10, 20, 30)))
        self.assertEqual(out.shape, (3, 4, 4))
        self.assertEqual(out[0, 0].tolist(), [10, 20, 30, 255])

    def test_bare_base64(self):
        encoded = base64.b64encode(self.png).decode()
        self.assertSameImage(load_image(encoded))
        # line-wrapped base64, as some encoders emit it
        wrapped = "\n".join(encoded[i:i + 76] for i in range(0, len(encoded), 76))
        self.assertSameImage(load_image(wrapped))

    def test_long_bare_base64(self):
        rng = np.random.default_rng(5)
        noise = rng.integers(0, 256, size=(200, 200, 4), dtype=np.uint8)
        encoded = base64.b64encode(png_bytes(noise)).decode()
        self.assertTrue(np.array_equal(load_image(encoded), noise))

    def test_overlong_path_is_load_error(self):
        with self.assertRaises(ImageLoadError):
            load_image("x" * 5000 + ".png")
        with self.assertRaises(ImageLoadError):
            load_image(Path("y" * 5000 + ".png"))

    def test_unreadable_file(self):
        with mock.patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            with self.assertRaisesRegex(ImageLoadError, "denied"):
                load_image(self.path)

    def test_decompression_bomb(self):
        with mock.patch("images.Image.open", side_effect=Image.DecompressionBombError("bomb")):
            with self.assertRaisesRegex(ImageLoadError, "bomb"):
                load_image(self.png)

    def test_array_channel_count(self):
        for shape in ((4, 4, 1), (4, 4, 2), (4, 4, 5)):
            with self.assertRaises(ImageLoadError):
                load_image(np.zeros(shape, dtype=np.uint8))
        self.assertEqual(load_image(np.zeros((4, 4, 3), dtype=np.uint8)).shape, (4, 4, 3))
        self.assertEqual(load_image(np.zeros((4, 4), dtype=np.uint8)).shape, (4, 4))

    def test_missing_file(self):
        with self.assertRaisesRegex(ImageLoadError, "File not found"):
            load_image(str(self.path.with_name("missing.png")))

    def test_garbage_bytes(self):
        with self.assertRaisesRegex(ImageLoadError, "Failed to decode image"):
            load_image(b"not an image")

    def test_bad_data_uri(self):
        with self.assertRaises(ImageLoadError):
            load_image("data:image/png;base64,@@@")
        with self.assertRaises(ImageLoadError):
            load_image("data:text/plain,hello")

    def test_unsupported_type(self):
        with self.assertRaises(ImageLoadError):
            load_image(42)
        with self.assertRaises(ImageLoadError):
            load_image(np.zeros((4, 4), dtype=np.float32))

    @mock.patch("images.requests.get")
    def test_http_url(self, get):
        get.return_value = mock.Mock(status_code=200, content=self.png)
        self.assertSameImage(load_image("https://example.com/qr.png", http_timeout_s=3))
        get.assert_called_once_with("https://example.com/qr.png", timeout=3)

    @mock.patch("images.requests.get")
    def test_http_errors(self, get):
        get.return_value = mock.Mock(status_code=404, content=b"")
        with self.assertRaisesRegex(ImageLoadError, "HTTP 404"):
            load_image("http://example.com/missing.png")

        get.side_effect = requests.ConnectionError("refused")
        with self.assertRaisesRegex(ImageLoadError, "refused"):
            load_image("http://example.com/qr.png")


if __name__ == "__main__":
    unittest.main()
