"""Generic admin updates to inquiries."""

import logging
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from app.core.db import utc_now
from app.core.errors import NotFoundError, ValidationError
from app.models.domain import Client, Inquiry
from app.models.enums import InquiryStatus

logger = logging.getLogger(__name__)


class InquiryService:
    def __init__(self, session: Session):
        self.session = session

    def get_inquiry(self, inquiry_id: UUID) -> Inquiry:
        inquiry = self.session.get(Inquiry, inquiry_id)
        if inquiry is None:
            raise NotFoundError(f"Inquiry {inquiry_id} not found", public_message="Inquiry not found")
        return inquiry

    def update_inquiry(
        self,
        inquiry_id: UUID,
        status: Optional[InquiryStatus] = None,
        final_price_minor: Optional[int] = None,
        converted_to_client_id: Optional[UUID] = None,
    ) -> Inquiry:
        """Apply the given fields. ACCEPTED is reachable only through quote acceptance."""
        inquiry = self.get_inquiry(inquiry_id)

        if status == InquiryStatus.ACCEPTED:
            raise ValidationError("Inquiries can only be accepted through the quote acceptance link")
        if final_price_minor is not None and final_price_minor < 0:
            raise ValidationError("Final price must not be negative")
        if converted_to_client_id is not None and self.session.get(Client, converted_to_client_id) is None:
            raise ValidationError(f"Client {converted_to_client_id} does not exist")

        if final_price_minor is not None:
            inquiry.final_price_minor = final_price_minor
        if converted_to_client_id is not None:
            inquiry.converted_to_client_id = converted_to_client_id
        if status is not None and status != inquiry.status:
            if status == InquiryStatus.QUOTED:
                inquiry.quoted_at = utc_now()
            inquiry.status = status

        self.session.add(inquiry)
        self.session.commit()
        self.session.refresh(inquiry)
        logger.info(
            "Inquiry updated",
            extra={"inquiry_id": str(inquiry.id), "status": inquiry.status.value},
        )
        return inquiry
