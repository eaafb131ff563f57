"""
Background sweep of expired revocation entries.

Runs `RevocationRegistry.sweep` on a fixed interval in APScheduler's
background thread, so request handling never waits on it. A failed run is
logged and the next one is scheduled as usual.
"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from backend.auth_service.revocation import RevocationRegistry

logger = logging.getLogger(__name__)

JOB_ID = "revoked-token-sweep"


class RevocationSweeper:
    def __init__(
        self,
        registry: RevocationRegistry,
        interval_seconds: int,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._registry = registry
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC", daemon=True)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def run_once(self) -> int:
        try:
            return self._registry.sweep()
        except Exception:
            logger.exception("[Auth] Failed to clean up expired blacklisted tokens")
            return 0

    def start(self) -> None:
        if self._running:
            return
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self._interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info("[Auth] Blacklist sweeper started (every %ds)", self._interval_seconds)

    def shutdown(self) -> None:
        if not self._running:
            return
        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("[Auth] Blacklist sweeper stopped")
