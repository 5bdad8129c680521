"""QR decode capabilities and the ordered multi-attempt decode strategy.

Capabilities: zxingcpp (bundled, reports EC level) -> pyzbar -> OpenCV.
Strategy: original -> original + inverted -> contrast-enhanced + inverted.
"""

import logging
import operator
from functools import reduce
from typing import Callable, Iterable

import cv2
import numpy as np

from models import (
    NOT_FOUND,
    QR_CODE,
    DecodeAttempt,
    DecodeHints,
    DecodeResult,
    MetadataKey,
)
from preprocess import DEFAULT_CONTRAST, enhance, invert, to_luminance

logger = logging.getLogger("qr_ec")


class DecoderUnavailable(RuntimeError):
    pass


class Capability:
    """A loaded decoding library: ``capability(image, hints) -> DecodeResult``.

    ``image`` belongs to the caller and is only read.
    """

    name = "base"

    def __call__(self, image: np.ndarray, hints: DecodeHints) -> DecodeResult:
        gray = to_luminance(image)
        result = self.decode_luminance(gray, hints)
        if result.found or not hints.also_inverted:
            return result
        return self.decode_luminance(invert(gray), hints)

    def decode_luminance(self, gray: np.ndarray, hints: DecodeHints) -> DecodeResult:
        raise NotImplementedError


class ZxingCapability(Capability):
    name = "zxingcpp"

    # hint format name -> zxingcpp.BarcodeFormat member
    FORMAT_NAMES = {QR_CODE: "QRCode"}

    def __init__(self, module):
        self._zx = module

    def formats_for(self, hints: DecodeHints):
        formats = [
            getattr(self._zx.BarcodeFormat, self.FORMAT_NAMES[name])
            for name in sorted(hints.possible_formats)
            if name in self.FORMAT_NAMES
        ]
        return reduce(operator.or_, formats) if formats else None

    def decode_luminance(self, gray: np.ndarray, hints: DecodeHints) -> DecodeResult:
        formats = self.formats_for(hints)
        if formats is None:
            return NOT_FOUND
        # inversion is driven by the hints, not by the library default
        results = self._zx.read_barcodes(
            gray,
            formats=formats,
            try_rotate=hints.try_harder,
            try_downscale=hints.try_harder,
            try_invert=False,
        )
        for r in results:
            text = r.text
            if not text and r.bytes:
                text = bytes(r.bytes).decode(hints.character_set, errors="replace")
            if not text:
                continue
            metadata = {
                MetadataKey.ERROR_CORRECTION_LEVEL: r.ec_level,
                MetadataKey.ORIENTATION: r.orientation,
                MetadataKey.SYMBOLOGY_IDENTIFIER: r.symbology_identifier,
            }
            return DecodeResult(text=text, metadata={k: v for k, v in metadata.items() if v not in (None, "")})
        return NOT_FOUND


class PyzbarCapability(Capability):
    name = "pyzbar"

    FORMAT_NAMES = {QR_CODE: "QRCODE"}

    def __init__(self, decode_fn, symbols):
        self._decode = decode_fn
        self._symbols = symbols  # the ZBarSymbol enum

    def decode_luminance(self, gray: np.ndarray, hints: DecodeHints) -> DecodeResult:
        symbols = [
            self._symbols[self.FORMAT_NAMES[name]]
            for name in sorted(hints.possible_formats)
            if name in self.FORMAT_NAMES
        ]
        if not symbols:
            return NOT_FOUND
        for r in self._decode(gray, symbols=symbols):
            text = r.data.decode(hints.character_set, errors="replace")
            if not text:
                continue
            metadata = {}
            if getattr(r, "orientation", None):
                metadata[MetadataKey.ORIENTATION] = r.orientation
            if getattr(r, "quality", None) is not None:
                metadata[MetadataKey.OTHER] = r.quality
            return DecodeResult(text=text, metadata=metadata)
        return NOT_FOUND


class OpenCVCapability(Capability):
    name = "opencv"

    def __init__(self):
        self._detector = cv2.QRCodeDetector()

    def decode_luminance(self, gray: np.ndarray, hints: DecodeHints) -> DecodeResult:
        if QR_CODE not in hints.possible_formats:
            return NOT_FOUND
        text, _, _ = self._detector.detectAndDecode(gray)
        if text:
            return DecodeResult(text=text)
        if hints.try_harder:
            retval, decoded_info, _, _ = self._detector.detectAndDecodeMulti(gray)
            if retval:
                for text in decoded_info:
                    if text:
                        return DecodeResult(text=text)
        return NOT_FOUND


def _load_zxingcpp() -> Capability:
    import zxingcpp

    return ZxingCapability(zxingcpp)


def _load_pyzbar() -> Capability:
    from pyzbar.pyzbar import ZBarSymbol, decode

    return PyzbarCapability(decode, ZBarSymbol)


def _load_opencv() -> Capability:
    return OpenCVCapability()


CAPABILITY_LOADERS: dict[str, Callable[[], Capability]] = {
    "zxingcpp": _load_zxingcpp,
    "pyzbar": _load_pyzbar,
    "opencv": _load_opencv,
}


def load_capability(sources: Iterable[str]) -> Capability:
    """Load the first decode source that imports and passes the self-check."""
    errors = []
    for name in sources:
        loader = CAPABILITY_LOADERS.get(name)
        if loader is None:
            errors.append(f"{name}: unknown decoder source")
            continue
        try:
            capability = loader()
        except Exception as e:
            logger.warning("Decoder source %s failed to load: %s", name, e)
            errors.append(f"{name}: {e}")
            continue
        if not callable(capability):
            errors.append(f"{name}: capability is not callable")
            continue
        logger.info("Decoder source %s loaded", name)
        return capability
    raise DecoderUnavailable("; ".join(errors) or "no decoder sources configured")


class DecodeStrategySequencer:
    """Runs the fixed attempt list against one capability; first success wins.

    Attempt order trades cost for recall and is part of the observable result
    through ``attempt_index``. Attempts run one after another, never retried.
    """

    def __init__(self, contrast: float = DEFAULT_CONTRAST, character_set: str = "UTF-8"):
        self.contrast = contrast
        base = DecodeHints(try_harder=True, also_inverted=False, character_set=character_set)
        self.attempts = (
            DecodeAttempt(1, "original", base),
            DecodeAttempt(2, "original", base.with_inverted()),
            DecodeAttempt(3, "enhanced", base.with_inverted()),
        )

    def _variant(self, name: str, original: np.ndarray) -> np.ndarray:
        if name == "enhanced":
            return enhance(original, self.contrast)
        return original

    def decode(self, original: np.ndarray, capability: Capability) -> tuple[DecodeResult, int | None]:
        variants: dict[str, np.ndarray] = {}
        for attempt in self.attempts:
            if attempt.variant not in variants:
                variants[attempt.variant] = self._variant(attempt.variant, original)
            image = variants[attempt.variant]

            try:
                result = capability(image, attempt.hints)
            except Exception as e:
                logger.debug("Attempt %d raised inside decoder: %s", attempt.index, e)
                result = NOT_FOUND

            if result.found:
                logger.debug("Decoded on attempt %d (%s)", attempt.index, attempt.variant)
                return result, attempt.index
            logger.debug("Attempt %d (%s) found nothing", attempt.index, attempt.variant)

        return NOT_FOUND, None
