"""Tailor Mint server runner.

Runs the API under uvicorn together with the background exchange-rate
refresher, which re-fetches cached rates shortly before they expire.

Usage:
    python src/server.py                         # API + rate refresher
    python src/server.py --port 9000
    python src/server.py --refresh-interval 30   # check every 30 seconds
"""

import argparse

import structlog
import uvicorn

from pricing.currency import get_currency_service
from pricing.currency.refresh import RateRefresher
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Tailor Mint server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--refresh-interval", type=float, default=60.0, help="Seconds between rate refresh checks")
    parser.add_argument("--refresh-lead", type=float, default=120.0, help="Refresh rates expiring within N seconds")
    args = parser.parse_args()

    configure_logging()

    refresher = RateRefresher(
        get_currency_service(),
        interval=args.refresh_interval,
        lead_seconds=args.refresh_lead,
    )
    refresher.start()
    try:
        uvicorn.run("app:app", host=args.host, port=args.port)
    finally:
        refresher.stop(timeout=5)


if __name__ == "__main__":
    main()
