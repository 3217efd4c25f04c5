from datetime import date

import pytest
from sqlmodel import Session

from app.core.errors import NumberingError
from app.models.enums import NumberedDocument
from app.services.numbering_service import DocumentNumberingService
from tests.utils.test_utils import create_test_client, create_test_document, create_test_invoice


class TestDocumentNumberingService:
    """Test cases for sequential document numbering."""

    def test_period_prefixes(self):
        """Agreements are scoped by year and month, invoices by year."""
        on = date(2026, 10, 18)
        assert DocumentNumberingService.period_prefix(NumberedDocument.SERVICE_AGREEMENT, on) == "SA-2610-"
        assert DocumentNumberingService.period_prefix(NumberedDocument.INVOICE, on) == "INV-2026-"

    def test_first_number_starts_at_001(self, db: Session):
        service = DocumentNumberingService(db)
        assert service.next_number(NumberedDocument.SERVICE_AGREEMENT, "SA-2610-") == "SA-2610-001"
        assert service.next_number(NumberedDocument.INVOICE, "INV-2026-") == "INV-2026-001"

    def test_increments_latest_in_prefix(self, db: Session):
        client = create_test_client(db)
        create_test_document(db, client, document_number="SA-2610-001")
        create_test_document(db, client, document_number="SA-2610-007")
        create_test_document(db, client, document_number="SA-2609-042")

        service = DocumentNumberingService(db)
        assert service.next_number(NumberedDocument.SERVICE_AGREEMENT, "SA-2610-") == "SA-2610-008"

    def test_numeric_order_past_three_digits(self, db: Session):
        """1000 sorts after 999 even though it is lexically smaller."""
        client = create_test_client(db)
        create_test_invoice(db, client, invoice_number="INV-2026-999")
        create_test_invoice(db, client, invoice_number="INV-2026-1000")

        service = DocumentNumberingService(db)
        assert service.next_number(NumberedDocument.INVOICE, "INV-2026-") == "INV-2026-1001"

    def test_new_period_restarts_sequence(self, db: Session):
        client = create_test_client(db)
        create_test_invoice(db, client, invoice_number="INV-2025-012")

        service = DocumentNumberingService(db)
        assert service.next_for_date(NumberedDocument.INVOICE, date(2026, 1, 2)) == "INV-2026-001"

    def test_malformed_suffix_raises(self, db: Session):
        client = create_test_client(db)
        create_test_document(db, client, document_number="SA-2610-ABC")

        service = DocumentNumberingService(db)
        with pytest.raises(NumberingError):
            service.next_number(NumberedDocument.SERVICE_AGREEMENT, "SA-2610-")
