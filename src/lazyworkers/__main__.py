"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command-line entry point: ``python -m lazyworkers``.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging

from .server import run
from .settings import DispatcherSettings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lazyworkers",
        description="Launch per-key workers on demand and reap them when idle.",
    )
    parser.add_argument("--host", default=None, help="Bind address (LAZYWORKERS_HOST).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (LAZYWORKERS_PORT).")
    parser.add_argument(
        "--idle-threshold",
        type=float,
        default=None,
        help="Seconds of inactivity before a worker is reaped.",
    )
    parser.add_argument("--log-level", default="INFO", help="Root logging level.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = DispatcherSettings.from_env()
    overrides = {
        "host": args.host,
        "port": args.port,
        "idle_threshold_s": args.idle_threshold,
    }
    settings = dataclasses.replace(
        settings, **{name: value for name, value in overrides.items() if value is not None}
    )
    run(settings)


if __name__ == "__main__":
    main()
