"""Background refresh of exchange rates that are about to expire."""

import threading

import structlog

from pricing.currency.service import CurrencyConversionService

logger = structlog.get_logger(__name__)


class RateRefresher:
    """Periodically calls ``refresh_expiring`` on a daemon thread."""

    def __init__(
        self,
        service: CurrencyConversionService,
        interval: float = 60.0,
        lead_seconds: float = 120.0,
    ) -> None:
        self.service = service
        self.interval = interval
        self.lead_seconds = lead_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="rate-refresher", daemon=True)
        self._thread.start()
        logger.info("Rate refresher started", interval=self.interval, lead_seconds=self.lead_seconds)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Rate refresher stopped")

    def run_once(self) -> int:
        return self.service.refresh_expiring(self.lead_seconds)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("Rate refresh cycle failed")
