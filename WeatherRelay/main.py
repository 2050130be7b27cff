"""Live weather relay server for the dashboard."""
import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import uvicorn

from config import Settings, load_settings
from server import create_app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Live weather relay server")
    parser.add_argument("--host", default=None, help="Interface to bind (default: WS_HOST or localhost)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (default: WS_PORT or 3001)")
    parser.add_argument("--refresh", type=int, default=None, help="Seconds between refreshes of subscribed locations")
    parser.add_argument("--cache-ttl", type=int, default=None, help="Seconds a fetched snapshot stays fresh")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags win over environment settings."""
    overrides = {
        "host": args.host,
        "port": args.port,
        "refresh_interval_seconds": args.refresh,
        "cache_ttl_seconds": args.cache_ttl,
    }
    return replace(settings, **{name: value for name, value in overrides.items() if value is not None})


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    settings = apply_overrides(load_settings(), args)

    app = create_app(settings)
    logging.info("Weather relay listening on http://%s:%s (WebSocket at /ws)", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
