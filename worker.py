"""Decode worker: owns the decoder lifecycle and runs one request end to end.

All decoding happens on a single dedicated thread. Requests that arrive while
the decoder is still loading are queued until loading settles.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

import numpy as np

from decoder import Capability, DecodeStrategySequencer, load_capability
from metadata import extract_ec_level
from models import (
    QR_CODE,
    AnalysisOutcome,
    ErrorKind,
    ReplyCallback,
    WorkerResponse,
    WorkerState,
)

logger = logging.getLogger("qr_ec")


class DecodeWorker:
    """Uninitialized -> Loading -> Ready | LoadFailed. Both end states are final."""

    def __init__(
        self,
        sources: Iterable[str] = ("zxingcpp", "pyzbar", "opencv"),
        sequencer: DecodeStrategySequencer | None = None,
        loader=load_capability,
    ):
        self.sources = tuple(sources)
        self.sequencer = sequencer or DecodeStrategySequencer()
        self.state = WorkerState.UNINITIALIZED
        self.load_error: str | None = None
        self._loader = loader
        self._capability: Capability | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qr-decode")
        self._settled: asyncio.Event | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unavailable_reported = False

    @property
    def is_ready(self) -> bool:
        return self.state is WorkerState.READY

    async def start(self):
        """Load the decode capability. Calling again after the first time does nothing."""
        if self.state is not WorkerState.UNINITIALIZED:
            await self._wait_settled()
            return

        self._settled = asyncio.Event()
        self.state = WorkerState.LOADING
        logger.info("Loading decoder (sources: %s)", ", ".join(self.sources))
        loop = asyncio.get_running_loop()
        try:
            capability = await loop.run_in_executor(self._executor, self._loader, self.sources)
            if not callable(capability):
                raise TypeError(f"decoder {capability!r} is not callable")
        except Exception as e:
            self.load_error = str(e)
            self.state = WorkerState.LOAD_FAILED
            logger.error("QR analysis unavailable: decoder failed to load (%s)", e)
        else:
            self._capability = capability
            self.state = WorkerState.READY
            logger.info("Decoder ready: %s", getattr(capability, "name", capability))
        finally:
            self._settled.set()

    async def _wait_settled(self):
        if self._settled is not None:
            await self._settled.wait()

    def post(self, request_id: int, image: np.ndarray, reply: ReplyCallback) -> None:
        """Accept a request; the outcome is delivered later through ``reply``."""
        task = asyncio.get_running_loop().create_task(self._handle(request_id, image, reply))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, request_id: int, image: np.ndarray, reply: ReplyCallback):
        if self.state is WorkerState.UNINITIALIZED:
            await self.start()
        await self._wait_settled()

        if self.state is WorkerState.LOAD_FAILED:
            outcome = self._unavailable()
        else:
            loop = asyncio.get_running_loop()
            try:
                outcome = await loop.run_in_executor(self._executor, self.process, image)
            except RuntimeError as e:
                # executor already shut down
                logger.warning("Request %d dropped by closed worker: %s", request_id, e)
                outcome = AnalysisOutcome.failure(ErrorKind.INTERNAL_FAULT, str(e))

        reply(WorkerResponse(request_id, outcome))

    def _unavailable(self) -> AnalysisOutcome:
        if not self._unavailable_reported:
            self._unavailable_reported = True
            logger.error("QR analysis is unavailable: %s", self.load_error)
        else:
            logger.debug("Rejecting request: decoder unavailable")
        return AnalysisOutcome.failure(ErrorKind.LIBRARY_UNAVAILABLE, self.load_error)

    def process(self, image: np.ndarray) -> AnalysisOutcome:
        """Run on the decode thread: sequenced attempts, then metadata extraction."""
        try:
            result, attempt_index = self.sequencer.decode(image, self._capability)
            if not result.found:
                logger.info("No QR code found after %d attempts", len(self.sequencer.attempts))
                return AnalysisOutcome.failure(ErrorKind.NOT_FOUND)

            ec_level = extract_ec_level(result.metadata)
            if ec_level is None:
                logger.info("Decoder gave no EC level for this symbol")
            return AnalysisOutcome(
                success=True,
                data=result.text,
                ec_level=ec_level,
                format=QR_CODE,
                attempt_index=attempt_index,
            )
        except Exception as e:
            logger.exception("Unexpected fault while decoding")
            return AnalysisOutcome.failure(ErrorKind.INTERNAL_FAULT, str(e))

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)
