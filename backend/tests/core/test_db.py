from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlmodel import Session

from app.core.db import utc_now
from app.models.domain import Client, LegalDocument
from app.models.enums import LegalDocumentStatus, OutboxTaskKind
from app.models.outbox import OutboxTask
from tests.utils.test_utils import create_test_client, create_test_document


class TestTimestamps:
    """Test cases for stored UTC timestamps."""

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == timezone.utc

    def test_client_round_trip(self, db: Session):
        client = create_test_client(db)
        db.expire_all()

        stored = db.get(Client, client.id)

        assert stored.created_at.tzinfo == timezone.utc
        assert stored.created_at <= utc_now()

    def test_outbox_task_round_trip(self, db: Session):
        run_after = datetime(2026, 10, 18, 9, 30, 3, tzinfo=timezone.utc)
        task = OutboxTask(
            kind=OutboxTaskKind.SIGNING_LINK,
            payload={"document_id": "abc"},
            idempotency_key="signing-link:abc",
            run_after=run_after,
        )
        db.add(task)
        db.commit()
        db.expire_all()

        stored = db.get(OutboxTask, task.id)

        assert stored.run_after == run_after
        assert stored.created_at.tzinfo == timezone.utc
        assert stored.completed_at is None

    def test_other_offsets_are_normalized(self, db: Session):
        task = OutboxTask(
            kind=OutboxTaskKind.INVOICE_NOTICE,
            payload={},
            idempotency_key="invoice-notice:abc",
            run_after=datetime(2026, 10, 18, 11, 30, tzinfo=timezone(timedelta(hours=2))),
        )
        db.add(task)
        db.commit()
        db.expire_all()

        stored = db.get(OutboxTask, task.id)

        assert stored.run_after == datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
        assert stored.run_after.utcoffset() == timedelta(0)

    def test_conditional_update_reads_back_aware(self, db: Session):
        document = create_test_document(db, create_test_client(db))
        signed_at = datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)

        db.execute(
            update(LegalDocument)
            .where(LegalDocument.id == document.id)
            .values(status=LegalDocumentStatus.ACKNOWLEDGED, acknowledged_at=signed_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.expire_all()

        assert db.get(LegalDocument, document.id).acknowledged_at == signed_at
