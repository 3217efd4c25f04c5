#!/usr/bin/env python3
"""
Drain the email outbox outside the API process.

Runs a single pass with --once (suitable for cron or a scheduled job),
otherwise polls until interrupted.
"""

import argparse
import logging
import signal
import threading

from sqlmodel import Session

from app.core.config import settings
from app.core.db import engine
from app.core.logging import setup_logging
from app.services.email_service import SmtpEmailProvider
from app.services.outbox_service import OutboxWorker
from app.services.workflow_service import build_quote_workflow

logger = logging.getLogger(__name__)


def handlers_for(session: Session):
    return build_quote_workflow(session, settings, SmtpEmailProvider.from_settings(settings)).task_handlers()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--once", action="store_true", help="run one drain pass and exit")
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    worker = OutboxWorker(
        session_factory=lambda: Session(engine),
        handlers_factory=handlers_for,
        poll_interval_s=settings.OUTBOX_POLL_INTERVAL_S,
        batch_size=settings.OUTBOX_BATCH_SIZE,
    )

    if args.once:
        summary = worker.tick()
        logger.info(
            "Outbox drained",
            extra={"claimed": summary.claimed, "done": summary.done, "failed": summary.failed},
        )
        return

    stopped = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stopped.set())
    worker.start()
    try:
        stopped.wait()
    except KeyboardInterrupt:
        pass
    finally:
        worker.stop()


if __name__ == "__main__":
    main()
