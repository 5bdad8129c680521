"""Pixel-level preprocessing: luminance, inversion and contrast enhancement.

Every function here returns a new array; callers' buffers are never written to.
"""

import cv2
import numpy as np

DEFAULT_CONTRAST = 1.3

# Rec. 601 luma weights
_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def contrast_factor(contrast: float = DEFAULT_CONTRAST) -> float:
    c = contrast * 255
    return (259 * (c + 255)) / (255 * (259 - c))


def enhance(image: np.ndarray, contrast: float = DEFAULT_CONTRAST) -> np.ndarray:
    """Grayscale + contrast stretch.

    Input is RGB(A) ``(H, W, 3|4)`` or luminance ``(H, W)`` uint8. The result has
    the same shape: the enhanced value goes into R, G and B, alpha is copied.
    """
    if image.ndim == 2:
        y = image.astype(np.float64)
    else:
        y = image[..., :3].astype(np.float64) @ _LUMA

    enhanced = contrast_factor(contrast) * (y - 128) + 128
    final = np.clip(np.rint(enhanced), 0, 255).astype(np.uint8)

    if image.ndim == 2:
        return final

    out = np.empty_like(image)
    out[..., 0] = final
    out[..., 1] = final
    out[..., 2] = final
    if image.shape[2] == 4:
        out[..., 3] = image[..., 3]
    return out


def to_luminance(image: np.ndarray) -> np.ndarray:
    """Single-channel uint8 view for the decoders (RGB channel order assumed)."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)


def invert(gray: np.ndarray) -> np.ndarray:
    """Photometric negative of a luminance image."""
    return cv2.bitwise_not(gray)
