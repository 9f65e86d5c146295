"""CLI entry point for the PCF batch runner."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional, Sequence

from pcf_services.common import get_settings

from .config import DEFAULT_PRODUCTION_LINES, RunnerConfig, select_lines
from .runner import build_services, run_once

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> RunnerConfig:
    p = argparse.ArgumentParser(description="PCF batch runner (product carbon footprints)")
    p.add_argument("--lookback-minutes", type=int, default=60,
                   help="completion look-back window")
    p.add_argument("--sleep-seconds", type=float, default=60.0)
    p.add_argument("--once", action="store_true", help="run a single iteration and exit")
    p.add_argument("--line", default=None, help="only process this production line")
    args = p.parse_args(argv)

    return RunnerConfig(
        lookback_minutes=args.lookback_minutes,
        sleep_seconds=args.sleep_seconds,
        once=bool(args.once),
        line=args.line,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    cfg = parse_args(argv)
    # Startup failures (missing mandatory configuration, unknown line) abort here.
    lines = select_lines(DEFAULT_PRODUCTION_LINES, cfg.line)
    settings = get_settings()
    services = build_services(settings)

    logger.info("PCF Batch Runner started")
    logger.info(
        "Config: lines=%s lookback=%dmin sleep=%.1fs",
        ",".join(line.name for line in lines), cfg.lookback_minutes, cfg.sleep_seconds,
    )

    try:
        while True:
            run_once(cfg, services, lines)
            if cfg.once:
                return
            logger.info("Iteración completada, esperando %.1fs...", cfg.sleep_seconds)
            time.sleep(cfg.sleep_seconds)
    finally:
        services.close()


if __name__ == "__main__":
    main()
