"""Durable side-effect bookkeeping: deferred email tasks and processed webhooks."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, Field, SQLModel, Text

from app.core.db import UTCDateTime, utc_now
from app.models.enums import OutboxTaskKind, OutboxTaskStatus


class OutboxTask(SQLModel, table=True):
    """A deferred side effect, written in the same transaction as its trigger."""

    __tablename__ = "outbox_tasks"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    kind: OutboxTaskKind
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    idempotency_key: str = Field(unique=True, index=True)
    run_after: datetime = Field(sa_column=Column(UTCDateTime, nullable=False, index=True))
    status: OutboxTaskStatus = Field(default=OutboxTaskStatus.PENDING, index=True)
    attempts: int = 0
    last_error: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))


class ProcessedPaymentEvent(SQLModel, table=True):
    """Provider event ids already reconciled; guards against re-delivery."""

    __tablename__ = "processed_payment_events"

    event_id: str = Field(primary_key=True)
    event_type: str
    invoice_id: Optional[UUID] = None
    outcome: str
    processed_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
