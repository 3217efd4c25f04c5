"""Durable outbox for deferred side effects, plus the background worker that drains it.

Tasks are written in the same transaction as the state change that triggers
them, so a restart never drops a scheduled email. Delivery is at most once
per task: a claimed task ends DONE or FAILED and is never retried
automatically.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.core.db import utc_now
from app.models.enums import OutboxTaskKind, OutboxTaskStatus
from app.models.outbox import OutboxTask

logger = logging.getLogger(__name__)

TaskHandler = Callable[[Dict[str, Any]], Any]


@dataclass
class RunSummary:
    claimed: int = 0
    done: int = 0
    failed: int = 0


class OutboxService:
    def __init__(self, session: Session):
        self.session = session

    def schedule(
        self,
        kind: OutboxTaskKind,
        payload: Dict[str, Any],
        delay_s: float,
        idempotency_key: str,
        now: Optional[datetime] = None,
    ) -> OutboxTask:
        """Add a PENDING task without committing; a known key returns the existing task."""
        existing = self.session.exec(
            select(OutboxTask).where(OutboxTask.idempotency_key == idempotency_key)
        ).first()
        if existing is not None:
            logger.info("Outbox task already scheduled", extra={"idempotency_key": idempotency_key})
            return existing

        task = OutboxTask(
            kind=kind,
            payload=payload,
            idempotency_key=idempotency_key,
            run_after=(now or utc_now()) + timedelta(seconds=delay_s),
        )
        self.session.add(task)
        return task

    def run_due(
        self,
        handlers: Mapping[OutboxTaskKind, TaskHandler],
        now: Optional[datetime] = None,
        limit: int = 20,
    ) -> RunSummary:
        """Claim due tasks in ``run_after`` order and run each through its handler."""
        now = now or utc_now()
        summary = RunSummary()

        due_ids = self.session.exec(
            select(OutboxTask.id)
            .where(OutboxTask.status == OutboxTaskStatus.PENDING, OutboxTask.run_after <= now)
            .order_by(OutboxTask.run_after, OutboxTask.created_at)
            .limit(limit)
        ).all()

        for task_id in due_ids:
            if not self._claim(task_id):
                continue
            summary.claimed += 1

            task = self.session.get(OutboxTask, task_id)
            kind = task.kind
            handler = handlers.get(kind)
            try:
                if handler is None:
                    raise LookupError(f"No handler registered for outbox task kind {kind.value}")
                handler(dict(task.payload))
            except Exception as exc:
                self.session.rollback()
                self._finish(task_id, OutboxTaskStatus.FAILED, error=str(exc))
                summary.failed += 1
                logger.error(
                    "Outbox task failed",
                    extra={"task_id": str(task_id), "kind": kind.value, "error": str(exc)},
                )
                continue

            self._finish(task_id, OutboxTaskStatus.DONE)
            summary.done += 1
            logger.info("Outbox task completed", extra={"task_id": str(task_id), "kind": kind.value})

        return summary

    def list_tasks(self, status: Optional[OutboxTaskStatus] = None, limit: int = 100) -> List[OutboxTask]:
        query = select(OutboxTask)
        if status is not None:
            query = query.where(OutboxTask.status == status)
        return list(self.session.exec(query.order_by(OutboxTask.run_after.desc()).limit(limit)).all())

    def _claim(self, task_id) -> bool:
        result = self.session.execute(
            update(OutboxTask)
            .where(OutboxTask.id == task_id, OutboxTask.status == OutboxTaskStatus.PENDING)
            .values(status=OutboxTaskStatus.RUNNING, attempts=OutboxTask.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount == 1

    def _finish(self, task_id, status: OutboxTaskStatus, error: Optional[str] = None) -> None:
        self.session.execute(
            update(OutboxTask)
            .where(OutboxTask.id == task_id)
            .values(status=status, last_error=error, completed_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.expire_all()


class OutboxWorker:
    """Daemon thread that drains due outbox tasks every poll interval.

    Each tick opens its own session through ``session_factory`` and builds
    the handler table with ``handlers_factory(session)``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        handlers_factory: Callable[[Session], Mapping[OutboxTaskKind, TaskHandler]],
        poll_interval_s: float = 2.0,
        batch_size: int = 20,
    ):
        self._session_factory = session_factory
        self._handlers_factory = handlers_factory
        self.poll_interval_s = poll_interval_s
        self.batch_size = batch_size
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        """Start the worker thread; no-op when already running."""
        if self._thread is not None and self._thread.is_alive():
            logger.debug("Outbox worker already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="OutboxWorker", daemon=True)
        self._thread.start()
        logger.info("Outbox worker started", extra={"poll_interval_s": self.poll_interval_s})

    def stop(self, timeout_s: float = 10.0) -> None:
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=timeout_s)
        if self._thread.is_alive():
            logger.warning("Outbox worker did not terminate in time", extra={"timeout_s": timeout_s})
        else:
            logger.info("Outbox worker stopped")
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> RunSummary:
        """Run one drain pass in a fresh session."""
        with self._session_factory() as session:
            return OutboxService(session).run_due(self._handlers_factory(session), limit=self.batch_size)

    def _run_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.poll_interval_s):
            try:
                self.tick()
            except Exception:
                logger.error("Outbox tick failed", exc_info=True)
