"""Command-line entry point: ``python -m deriv_digit_tracker``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys

from deriv_digit_tracker.config import KNOWN_SYMBOLS, get_settings
from deriv_digit_tracker.session import DEFAULT_STATUS_INTERVAL, DigitSession

logger = logging.getLogger("deriv_digit_tracker")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deriv_digit_tracker",
        description="Track last-digit statistics of a Deriv tick stream.",
    )
    parser.add_argument(
        "--symbol",
        help=f"Tick symbol (e.g. {', '.join(KNOWN_SYMBOLS)}); defaults to DERIV_SYMBOL",
    )
    parser.add_argument("--window", type=int, help="Rolling window size (clamped to 20-5000)")
    parser.add_argument("--dry-run", action="store_true", help="Do not publish to Redis")
    parser.add_argument(
        "--status-interval",
        type=float,
        default=DEFAULT_STATUS_INTERVAL,
        help="Seconds between status log lines (0 disables)",
    )
    return parser


async def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    if args.symbol:
        settings.deriv.symbol = args.symbol
    if args.symbol and args.symbol not in KNOWN_SYMBOLS:
        logger.warning("Symbol %s is not one of the known symbols %s", args.symbol, KNOWN_SYMBOLS)

    session = DigitSession(
        settings,
        dry_run=True if args.dry_run else None,
        status_interval=args.status_interval,
    )
    await session.start()
    try:
        if args.window is not None:
            await session.request_resize(args.window)
        while session.is_running:
            await asyncio.sleep(1.0)
    finally:
        await session.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Settings: %s", settings.redacted_summary())

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(args))
    return 0


if __name__ == "__main__":
    sys.exit(main())
