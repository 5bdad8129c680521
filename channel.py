"""Async request/response boundary between the host and the decode worker.

Each submit gets a fresh id, a pending entry and a timer. Whichever fires
first, the worker's response or the timer, resolves the request; the other is
dropped. Overlapping submits queue behind one another, so at most one request
is outstanding at a time.
"""

import asyncio
import itertools
import logging
import time

import numpy as np

from models import AnalysisOutcome, ErrorKind, PendingRequest, WorkerResponse
from worker import DecodeWorker

logger = logging.getLogger("qr_ec")

DEFAULT_TIMEOUT_MS = 10_000


class RequestChannel:
    def __init__(self, worker: DecodeWorker, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.worker = worker
        self.timeout_s = timeout_ms / 1000
        self._pending: dict[int, PendingRequest] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def submit(self, image: np.ndarray) -> AnalysisOutcome:
        async with self._lock:
            loop = asyncio.get_running_loop()
            request_id = next(self._ids)
            pending = PendingRequest(
                request_id=request_id,
                submitted_at=time.monotonic(),
                future=loop.create_future(),
            )
            pending.timer = loop.call_later(self.timeout_s, self._expire, request_id)
            self._pending[request_id] = pending
            logger.debug("Request %d submitted", request_id)

            self.worker.post(request_id, image, self._on_response)
            try:
                return await pending.future
            finally:
                # host-side cancellation: forget the request, a late reply is dropped
                if self._pending.pop(request_id, None) is not None:
                    pending.timer.cancel()

    def _on_response(self, response: WorkerResponse):
        pending = self._pending.pop(response.request_id, None)
        if pending is None:
            logger.debug("Discarding late response for request %d", response.request_id)
            return
        pending.timer.cancel()
        elapsed_ms = (time.monotonic() - pending.submitted_at) * 1000
        logger.debug("Request %d answered in %.0f ms", response.request_id, elapsed_ms)
        if not pending.future.done():
            pending.future.set_result(response.outcome)

    def _expire(self, request_id: int):
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        logger.warning("Request %d timed out after %.1f s", request_id, self.timeout_s)
        if not pending.future.done():
            pending.future.set_result(AnalysisOutcome.failure(ErrorKind.TIMEOUT))
