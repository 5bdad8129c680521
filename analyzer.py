"""Host-facing QR EC analyzer: image source in, AnalysisOutcome out.

    async with QRAnalyzer(load_config()) as analyzer:
        outcome = await analyzer.analyze("photo.jpg")
        print(outcome.ec_level)

``analyze`` never raises for decode problems; every failure comes back as an
outcome with ``success=False`` and an ErrorKind.
"""

import asyncio
import logging

from channel import DEFAULT_TIMEOUT_MS, RequestChannel
from decoder import DecodeStrategySequencer, load_capability
from images import ImageLoadError, load_image
from models import AnalysisOutcome, ErrorKind, WorkerState
from utils import DEFAULT_CONFIG, decoder_sources
from worker import DecodeWorker

logger = logging.getLogger("qr_ec")


class QRAnalyzer:
    def __init__(self, config: dict | None = None, loader=load_capability):
        cfg = {**DEFAULT_CONFIG, **(config or {})}
        self.config = cfg
        sequencer = DecodeStrategySequencer(
            contrast=cfg["contrast"],
            character_set=cfg["character_set"],
        )
        self.worker = DecodeWorker(decoder_sources(cfg), sequencer=sequencer, loader=loader)
        self.channel = RequestChannel(self.worker, timeout_ms=cfg.get("timeout_ms", DEFAULT_TIMEOUT_MS))

    @property
    def is_ready(self) -> bool:
        return self.worker.is_ready

    @property
    def state(self) -> WorkerState:
        return self.worker.state

    async def start(self):
        await self.worker.start()

    async def close(self):
        self.worker.close()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def analyze(self, source) -> AnalysisOutcome:
        try:
            image = await asyncio.to_thread(load_image, source, self.config["http_timeout_s"])
        except ImageLoadError as e:
            logger.warning("Image rejected: %s", e)
            return AnalysisOutcome.failure(ErrorKind.INVALID_IMAGE, str(e))
        except Exception as e:
            logger.exception("Unexpected fault while loading image")
            return AnalysisOutcome.failure(ErrorKind.INTERNAL_FAULT, str(e))

        outcome = await self.channel.submit(image)
        if outcome.success:
            logger.info(
                "QR decoded on attempt %s, EC level %s",
                outcome.attempt_index,
                outcome.ec_level.value if outcome.ec_level else "unknown",
            )
        return outcome
