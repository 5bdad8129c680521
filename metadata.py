"""Recover the error-correction level from decoder result metadata."""

import logging
from typing import Any, Mapping

from models import ECLevel, MetadataKey

logger = logging.getLogger("qr_ec")

_LEVELS = {level.value: level for level in ECLevel}


def _as_level(value: Any) -> ECLevel | None:
    if value is None:
        return None
    if isinstance(value, ECLevel):
        return value
    return _LEVELS.get(str(value))


def extract_ec_level(metadata: Mapping[Any, Any] | None) -> ECLevel | None:
    """Return the EC level carried by ``metadata``, or None.

    The dedicated ERROR_CORRECTION_LEVEL entry wins; failing that, the first
    value whose string form is exactly L, M, Q or H. Matching is case-sensitive.
    """
    if not metadata:
        return None

    level = _as_level(metadata.get(MetadataKey.ERROR_CORRECTION_LEVEL))
    if level is not None:
        return level

    for key, value in metadata.items():
        level = _as_level(value)
        if level is not None:
            logger.debug("EC level %s found under metadata key %s", level.value, key)
            return level

    return None
