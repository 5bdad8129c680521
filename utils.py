"""Shared helpers: config, logging, structured result log."""

import json
import time
import logging
from pathlib import Path

logger = logging.getLogger("qr_ec")

CONFIG_PATH = Path(__file__).parent / "config.json"

DEFAULT_CONFIG = {
    "decoder_source": "zxingcpp",
    "fallback_sources": ["pyzbar", "opencv"],
    "timeout_ms": 10000,
    "contrast": 1.3,
    "character_set": "UTF-8",
    "http_timeout_s": 10,
    "log_file": "analyzer.log.jsonl",
}


def load_config(path: str | Path | None = None) -> dict:
    """Defaults overlaid with the JSON file, if it exists."""
    cfg = dict(DEFAULT_CONFIG)
    path = Path(path) if path else CONFIG_PATH
    if path.exists():
        with open(path) as f:
            cfg.update(json.load(f))
    else:
        logger.debug("No config at %s, using defaults", path)
    return cfg


def decoder_sources(cfg: dict) -> list[str]:
    """Primary source first, then fallbacks, without duplicates."""
    sources = [cfg["decoder_source"]] + list(cfg.get("fallback_sources") or [])
    return list(dict.fromkeys(sources))


class JsonLinesLogger:
    """Append structured JSON lines to a log file."""

    def __init__(self, path: str):
        self._path = Path(path)

    def log(self, event: str, **data):
        entry = {"ts": time.time(), "event": event, **data}
        with open(self._path, "a") as f:
            f.write(json.dumps(entry) + "\n")


def setup_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
