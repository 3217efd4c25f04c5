"""FastAPI dependencies: sessions, settings, admin check and service wiring."""

import hmac
from collections.abc import Generator
from typing import Any, Optional

from fastapi import Cookie, Depends, HTTPException
from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.db import engine
from app.services.document_generators import ProviderDetails
from app.services.email_service import EmailProvider, NotificationDispatcher, SmtpEmailProvider
from app.services.inquiry_service import InquiryService
from app.services.invoice_service import InvoiceService
from app.services.outbox_service import OutboxService
from app.services.payment_service import PaymentService, build_payment_service, build_stripe_client
from app.services.pdf_service import BankDetails
from app.services.workflow_service import QuoteWorkflowService, build_quote_workflow

ADMIN_COOKIE = "invoice-auth"


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def require_admin(
    invoice_auth: Optional[str] = Cookie(default=None, alias=ADMIN_COOKIE),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.ADMIN_PASSWORD.get_secret_value()
    if not expected or not invoice_auth:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(invoice_auth.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_email_provider(settings: Settings = Depends(get_settings)) -> EmailProvider:
    return SmtpEmailProvider.from_settings(settings)


def get_stripe_client(settings: Settings = Depends(get_settings)) -> Optional[Any]:
    return build_stripe_client(settings)


def get_workflow(
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_provider: EmailProvider = Depends(get_email_provider),
) -> QuoteWorkflowService:
    return build_quote_workflow(session, settings, email_provider)


def get_invoice_service(
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_provider: EmailProvider = Depends(get_email_provider),
) -> InvoiceService:
    provider = ProviderDetails.from_settings(settings)
    return InvoiceService(
        session,
        dispatcher=NotificationDispatcher(email_provider, provider_name=provider.name),
        provider=provider,
        bank=BankDetails.from_settings(settings),
        admin_email=settings.admin_email,
        invoice_due_days=settings.INVOICE_DUE_DAYS,
    )


def get_payment_service(
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    stripe_client: Optional[Any] = Depends(get_stripe_client),
) -> PaymentService:
    return build_payment_service(session, settings, stripe_client)


def get_inquiry_service(session: Session = Depends(get_db)) -> InquiryService:
    return InquiryService(session)


def get_outbox_service(session: Session = Depends(get_db)) -> OutboxService:
    return OutboxService(session)
