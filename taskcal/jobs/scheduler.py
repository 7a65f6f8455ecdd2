from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..db import session_scope
from ..services.task_service import prune_ledgers

log = logging.getLogger(__name__)

PRUNE_JOB_ID = "ledger-prune"


class Scheduler:
    def __init__(self, timezone: str) -> None:
        self.scheduler = BackgroundScheduler(timezone=timezone)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def schedule_ledger_prune(self, retention_days: int, hour: int = 3) -> None:
        self.scheduler.add_job(
            self._prune_ledgers,
            CronTrigger(hour=hour, minute=0),
            args=[retention_days],
            id=PRUNE_JOB_ID,
            replace_existing=True,
        )

    def _prune_ledgers(self, retention_days: int) -> int:
        with session_scope() as session:
            removed = prune_ledgers(session, retention_days=retention_days)
        log.info("Ledger prune job removed %d entries", removed)
        return removed


def create_scheduler(timezone: str) -> Scheduler:
    return Scheduler(timezone=timezone)
