"""Shared value types passed between the decoder, worker, channel and host."""

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Callable

QR_CODE = "QR_CODE"


class ECLevel(str, Enum):
    L = "L"
    M = "M"
    Q = "Q"
    H = "H"


class ErrorKind(str, Enum):
    LIBRARY_UNAVAILABLE = "LibraryUnavailable"
    NOT_FOUND = "NotFound"
    TIMEOUT = "Timeout"
    INTERNAL_FAULT = "InternalFault"
    INVALID_IMAGE = "InvalidImage"


class WorkerState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    LOADING = "Loading"
    READY = "Ready"
    LOAD_FAILED = "LoadFailed"


class MetadataKey(IntEnum):
    """Result metadata tags, numbered the way ZXing numbers them."""

    OTHER = 0
    ORIENTATION = 1
    BYTE_SEGMENTS = 2
    ERROR_CORRECTION_LEVEL = 3
    ISSUE_NUMBER = 4
    SUGGESTED_PRICE = 5
    POSSIBLE_COUNTRY = 6
    UPC_EAN_EXTENSION = 7
    PDF417_EXTRA_METADATA = 8
    STRUCTURED_APPEND_SEQUENCE = 9
    STRUCTURED_APPEND_PARITY = 10
    SYMBOLOGY_IDENTIFIER = 11


@dataclass(frozen=True)
class DecodeHints:
    try_harder: bool = True
    also_inverted: bool = False
    possible_formats: frozenset[str] = frozenset({QR_CODE})
    character_set: str = "UTF-8"

    def with_inverted(self) -> "DecodeHints":
        return replace(self, also_inverted=True)


@dataclass(frozen=True)
class DecodeAttempt:
    index: int
    variant: str  # "original" | "enhanced"
    hints: DecodeHints


@dataclass(frozen=True)
class DecodeResult:
    """Found when ``text`` is set, NotFound otherwise."""

    text: str | None = None
    metadata: dict[MetadataKey, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.text is not None


NOT_FOUND = DecodeResult()


@dataclass
class AnalysisOutcome:
    success: bool
    data: str | None = None
    ec_level: ECLevel | None = None
    format: str = QR_CODE
    attempt_index: int | None = None
    error: ErrorKind | None = None
    detail: str | None = None

    @classmethod
    def failure(cls, error: ErrorKind, detail: str | None = None) -> "AnalysisOutcome":
        return cls(success=False, error=error, detail=detail)

    def to_dict(self) -> dict:
        """Wire shape: camelCase keys, absent fields omitted."""
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.ec_level is not None:
            out["ecLevel"] = self.ec_level.value
        out["format"] = self.format
        if self.attempt_index is not None:
            out["attemptIndex"] = self.attempt_index
        if self.error is not None:
            out["error"] = self.error.value
        if self.detail is not None:
            out["detail"] = self.detail
        return out


@dataclass(frozen=True)
class WorkerResponse:
    request_id: int
    outcome: AnalysisOutcome


@dataclass
class PendingRequest:
    request_id: int
    submitted_at: float
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


ReplyCallback = Callable[[WorkerResponse], None]
