"""Image ingestion: turn a path, URI, URL, bytes or array into an RGBA buffer."""

import base64
import binascii
import io
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import numpy as np
import requests
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger("qr_ec")


class ImageLoadError(ValueError):
    pass


def _from_pil(img: Image.Image) -> np.ndarray:
    img = ImageOps.exif_transpose(img)
    arr = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ImageLoadError("image has zero size")
    return arr.copy()


def decode_bytes(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into an (H, W, 4) RGBA array."""
    if not data:
        raise ImageLoadError("empty image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _from_pil(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImageLoadError(f"Failed to decode image: {e}") from e


def _decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep or ";base64" not in header:
        raise ImageLoadError("only base64 data URIs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageLoadError(f"invalid base64 payload: {e}") from e


def fetch_url(url: str, timeout_s: float = 10) -> bytes:
    """Download a remote image over HTTP(S)."""
    try:
        resp = requests.get(url, timeout=timeout_s)
    except requests.RequestException as e:
        raise ImageLoadError(f"Failed to fetch {url}: {e}") from e
    if resp.status_code != 200:
        raise ImageLoadError(f"Failed to fetch {url}: HTTP {resp.status_code}")
    return resp.content


def read_file(path: Path) -> bytes:
    try:
        exists = path.is_file()
        data = path.read_bytes() if exists else None
    except (OSError, ValueError) as e:
        raise ImageLoadError(f"Failed to read {str(path)[:120]}: {e}") from e
    if data is None:
        raise ImageLoadError(f"File not found: {str(path)[:120]}")
    return data


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except (OSError, ValueError):
        # e.g. ENAMETOOLONG for a long base64 string
        return False


def _bare_base64(text: str) -> bytes | None:
    compact = "".join(text.split())
    if not compact:
        return None
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return None


def load_image(source, http_timeout_s: float = 10) -> np.ndarray:
    """Resolve any supported image source to an owned RGBA array.

    Accepts numpy arrays, PIL images, raw bytes, ``data:`` URIs, ``http(s)://``
    URLs, ``file://`` URIs, filesystem paths and bare base64 strings (used when
    the string is not an existing file). Raises ImageLoadError.
    """
    if isinstance(source, np.ndarray):
        if (
            source.dtype != np.uint8
            or source.ndim not in (2, 3)
            or (source.ndim == 3 and source.shape[2] not in (3, 4))
            or source.size == 0
        ):
            raise ImageLoadError(f"unsupported array: dtype={source.dtype} shape={source.shape}")
        return source.copy()
    if isinstance(source, Image.Image):
        return _from_pil(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_bytes(bytes(source))
    if isinstance(source, Path):
        return decode_bytes(read_file(source))
    if not isinstance(source, str):
        raise ImageLoadError(f"unsupported image source type: {type(source).__name__}")

    if source.startswith("data:"):
        return decode_bytes(_decode_data_uri(source))
    if source.startswith(("http://", "https://")):
        logger.debug("Fetching remote image %s", source[:120])
        return decode_bytes(fetch_url(source, http_timeout_s))
    if source.startswith("file://"):
        return decode_bytes(read_file(Path(unquote(urlparse(source).path))))

    path = Path(source)
    if not _is_file(path):
        data = _bare_base64(source)
        if data is not None:
            return decode_bytes(data)
    return decode_bytes(read_file(path))
