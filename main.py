"""Command-line entry point: analyze images and report payload + EC level."""

import argparse
import asyncio
import json
import logging
import sys

from analyzer import QRAnalyzer
from models import ErrorKind
from utils import (
    load_config,
    setup_logging,
    JsonLinesLogger,
)

logger = logging.getLogger("qr_ec")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Decode QR images and report their error-correction level.")
    ap.add_argument("images", nargs="+", help="Image paths, file:// URIs, http(s) URLs or data URIs")
    ap.add_argument("--config", help="Path to config.json (defaults next to this module)")
    ap.add_argument("--json", action="store_true", help="Print one JSON object per image")
    ap.add_argument("--timeout-ms", type=int, help="Per-image decode timeout")
    ap.add_argument("--decoder", help="Primary decoder source: zxingcpp, pyzbar or opencv")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap.parse_args(argv)


def format_outcome(source: str, outcome: dict) -> str:
    if outcome["success"]:
        ec = outcome.get("ecLevel") or "?"
        return f"{source}: EC={ec} attempt={outcome.get('attemptIndex')} data={outcome['data']}"
    detail = f" ({outcome['detail']})" if outcome.get("detail") else ""
    return f"{source}: {outcome['error']}{detail}"


async def run(args) -> int:
    config = load_config(args.config)
    if args.timeout_ms:
        config["timeout_ms"] = args.timeout_ms
    if args.decoder:
        config["decoder_source"] = args.decoder

    jlog = JsonLinesLogger(config["log_file"])
    failures = 0

    async with QRAnalyzer(config) as analyzer:
        if not analyzer.is_ready:
            logger.error("QR analysis unavailable: no decoder could be loaded")

        for source in args.images:
            outcome = await analyzer.analyze(source)
            wire = outcome.to_dict()
            jlog.log("analysis", source=source[:200], **wire)

            if not outcome.success:
                failures += 1
                if outcome.error in (ErrorKind.NOT_FOUND, ErrorKind.TIMEOUT):
                    logger.info("No QR code read from %s", source[:120])

            if args.json:
                print(json.dumps({"source": source, **wire}))
            else:
                print(format_outcome(source, wire))

    return 0 if failures == 0 else 1


def main(argv=None):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
