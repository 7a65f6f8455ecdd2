from __future__ import annotations

import logging
import signal
import threading

from . import models  # noqa: F401  registers the tables on Base
from .db import Base, engine
from .jobs.scheduler import Scheduler, create_scheduler
from .settings import Settings, get_settings

log = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def start_maintenance(settings: Settings) -> Scheduler:
    scheduler = create_scheduler(settings.timezone)
    scheduler.schedule_ledger_prune(settings.ledger_retention_days, hour=settings.prune_hour)
    scheduler.start()
    return scheduler


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
    init_db()
    scheduler = start_maintenance(settings)
    log.info("Ledger maintenance running in %s, retention %d days", settings.timezone, settings.ledger_retention_days)

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        stop.wait()
    except KeyboardInterrupt:
        log.info("Interrupted, stopping maintenance")
    finally:
        scheduler.shutdown()


if __name__ == "__main__":
    main()
