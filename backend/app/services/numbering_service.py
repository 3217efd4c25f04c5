"""Sequential human-readable document numbers."""

import logging
import re
from datetime import date
from typing import Callable, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import ConflictError, NumberingError
from app.models.domain import Invoice, LegalDocument
from app.models.enums import NumberedDocument

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 3

# One retry after a document-number collision, then give up with a conflict
NUMBERING_ATTEMPTS = 2

T = TypeVar("T")

_SUFFIX_RE = re.compile(r"^(\d+)$")


class DocumentNumberingService:
    """Issue the next number in a per-type, per-period namespace.

    Numbers look like ``SA-2610-001`` (agreements, scoped to year and month)
    and ``INV-2026-001`` (invoices, scoped to year). Reading the latest number
    and incrementing it is not atomic; the unique constraints on
    ``document_number``/``invoice_number`` reject a duplicate and the caller
    retries with a fresh number.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def period_prefix(document_type: NumberedDocument, on: date) -> str:
        """Namespace prefix for documents issued on ``on``."""
        if document_type == NumberedDocument.SERVICE_AGREEMENT:
            return f"SA-{on:%y%m}-"
        if document_type == NumberedDocument.INVOICE:
            return f"INV-{on:%Y}-"
        raise NumberingError(f"Unsupported document type: {document_type}")

    def next_number(self, document_type: NumberedDocument, prefix: str) -> str:
        """Return prefix + zero-padded (latest sequence + 1), starting at 001."""
        latest = self._latest_with_prefix(document_type, prefix)
        sequence = 1
        if latest is not None:
            sequence = self._parse_sequence(latest, prefix) + 1

        number = f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"
        logger.debug("Issued document number", extra={"document_type": document_type.value, "number": number})
        return number

    def next_for_date(self, document_type: NumberedDocument, on: date) -> str:
        return self.next_number(document_type, self.period_prefix(document_type, on))

    def _latest_with_prefix(self, document_type: NumberedDocument, prefix: str) -> Optional[str]:
        column = self._number_column(document_type)
        # Longest first, then lexical: numeric order for zero-padded suffixes past 999
        return self.session.exec(
            select(column)
            .where(column.startswith(prefix))
            .order_by(func.length(column).desc(), column.desc())
            .limit(1)
        ).first()

    @staticmethod
    def _number_column(document_type: NumberedDocument):
        if document_type == NumberedDocument.SERVICE_AGREEMENT:
            return LegalDocument.document_number
        if document_type == NumberedDocument.INVOICE:
            return Invoice.invoice_number
        raise NumberingError(f"Unsupported document type: {document_type}")

    @staticmethod
    def _parse_sequence(number: str, prefix: str) -> int:
        match = _SUFFIX_RE.match(number[len(prefix):])
        if not match:
            raise NumberingError(f"Cannot parse sequence from document number {number!r}")
        return int(match.group(1))


def with_number_retry(session: Session, operation: Callable[[], T], attempts: int = NUMBERING_ATTEMPTS) -> T:
    """Run ``operation``, rolling back and re-running it after a number collision."""
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except IntegrityError as exc:
            session.rollback()
            logger.warning(
                "Document number collision",
                extra={"attempt": attempt, "error": str(exc.orig)},
            )
    raise ConflictError(
        "Could not allocate a unique document number",
        public_message="Please try again",
    )
