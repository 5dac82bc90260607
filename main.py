"""
Booking engine entry point.

Serves the HTTP API with uvicorn, or runs the offline console walkthrough
for development.

Usage:
    HTTP API:     python main.py serve [--host 0.0.0.0] [--port 8000]
    Console mode: python main.py demo
"""

import argparse
import logging

from booking_engine.config import settings

logger = logging.getLogger(__name__)


def _run_server(host: str, port: int) -> None:
    """Start the HTTP API over a fresh in-memory store."""
    import uvicorn

    from booking_engine.api import create_app

    logger.info("Serving booking API on %s:%d", host, port)
    uvicorn.run(create_app(), host=host, port=port, log_level=settings.log_level.lower())


def _run_demo_mode() -> None:
    """Start the offline console demo (no server required)."""
    from console_demo import ConsoleDemo

    ConsoleDemo().run()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Provider availability and booking engine")
    parser.add_argument("mode", nargs="?", choices=["serve", "demo"], default="serve")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    if args.mode == "demo":
        _run_demo_mode()
    else:
        _run_server(args.host, args.port)


if __name__ == "__main__":
    main()
