from sqlmodel import Session, select

from app.models.domain import Client, Inquiry
from app.models.enums import InquiryStatus
from scripts.seed_data import seed_demo_records


class TestSeedDemoRecords:
    """Test cases for the demo seed."""

    def test_seeds_quoted_inquiry(self, db: Session):
        inquiry = seed_demo_records(db)

        assert inquiry.status == InquiryStatus.QUOTED
        assert inquiry.final_price_minor == 150000
        assert inquiry.quoted_at is not None
        client = db.get(Client, inquiry.converted_to_client_id)
        assert client.primary_email == "demo.client@example.com"

    def test_is_idempotent(self, db: Session):
        first = seed_demo_records(db)
        second = seed_demo_records(db)

        assert second.id == first.id
        assert len(db.exec(select(Inquiry)).all()) == 1
        assert len(db.exec(select(Client)).all()) == 1
