"""Invoice endpoints: admin management plus the public lookup and payment confirmation."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_invoice_service, get_payment_service, get_workflow, require_admin
from app.core.db import utc_now
from app.core.errors import WorkflowError
from app.core.money import to_major, to_minor
from app.models.api import (
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceActionRequest,
    InvoiceActionResponse,
    InvoiceListResponse,
    InvoiceStatsResponse,
    InvoiceStatusRequest,
    InvoiceSummary,
    PaymentStatusRequest,
    PaymentStatusResponse,
    PublicClientDetails,
    PublicInvoiceItem,
    PublicInvoiceResponse,
)
from app.services import InvoiceService, PaymentService, QuoteWorkflowService
from app.services.document_generators import LineItem
from app.services.invoice_service import InvoiceView, effective_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoice", tags=["invoices"], dependencies=[Depends(require_admin)])
public_router = APIRouter(prefix="/invoice", tags=["invoices"])


def _summary(view: InvoiceView) -> InvoiceSummary:
    invoice = view.invoice
    return InvoiceSummary(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        client_id=invoice.client_id,
        client_name=view.client.name if view.client else None,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        total=invoice.total,
        amount_paid=invoice.amount_paid,
        status=view.effective_status,
        payment_method=invoice.payment_method.value if invoice.payment_method else None,
        sent_at=invoice.sent_at,
    )


@router.get("/list", response_model=InvoiceListResponse)
def list_invoices(invoice_service: InvoiceService = Depends(get_invoice_service)) -> InvoiceListResponse:
    """
    List every invoice with its effective status and portfolio totals.
    """
    try:
        views, stats = invoice_service.list_invoices()
        return InvoiceListResponse(
            invoices=[_summary(view) for view in views],
            stats=InvoiceStatsResponse(
                total_invoiced=to_major(stats.total_invoiced_minor),
                total_paid=to_major(stats.total_paid_minor),
                total_unpaid=to_major(stats.total_unpaid_minor),
                total_overdue=to_major(stats.total_overdue_minor),
                invoice_count=stats.invoice_count,
                paid_count=stats.paid_count,
                overdue_count=stats.overdue_count,
            ),
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/update-status", response_model=InvoiceSummary)
def update_status(
    request: InvoiceStatusRequest,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceSummary:
    try:
        invoice = invoice_service.update_status(request.invoice_id, request.status)
        status = effective_status(invoice, utc_now().date())
        return _summary(InvoiceView(invoice=invoice, client=invoice.client, effective_status=status))
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/send-reminder", response_model=InvoiceActionResponse)
def send_reminder(
    request: InvoiceActionRequest,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceActionResponse:
    try:
        invoice_service.send_reminder(request.invoice_id)
        return InvoiceActionResponse(invoice_id=request.invoice_id, message="Reminder sent")
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/send", response_model=InvoiceActionResponse)
def send_invoice(
    request: InvoiceActionRequest,
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> InvoiceActionResponse:
    """
    Email the invoice PDF to the client now, outside the signing flow.
    """
    try:
        invoice = workflow.dispatch_invoice(request.invoice_id)
        return InvoiceActionResponse(invoice_id=invoice.id, message=f"Invoice {invoice.invoice_number} sent")
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/generate", response_model=GenerateInvoiceResponse)
def generate_invoice(
    request: GenerateInvoiceRequest,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> GenerateInvoiceResponse:
    """
    Create a numbered invoice from free line items and, by default, email it.
    """
    try:
        invoice = invoice_service.create_invoice(
            request.client_id,
            [
                LineItem(description=item.description, quantity=item.quantity, unit_price_minor=to_minor(item.price))
                for item in request.items
            ],
            issue_date=request.issue_date,
            due_date=request.due_date,
            notes=request.notes,
            send=request.send,
        )
        status = effective_status(invoice, utc_now().date())
        message = f"Invoice {invoice.invoice_number} generated"
        if request.send:
            message += " and sent"
        return GenerateInvoiceResponse(
            invoice=_summary(InvoiceView(invoice=invoice, client=invoice.client, effective_status=status)),
            message=message,
        )
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@public_router.get("/public/{invoice_number}", response_model=PublicInvoiceResponse)
def get_public_invoice(
    invoice_number: str,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> PublicInvoiceResponse:
    """
    Invoice details for the payment page, looked up by invoice number.
    """
    try:
        view = invoice_service.get_by_number(invoice_number)
        invoice = view.invoice
        client = view.client
        return PublicInvoiceResponse(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            status=view.effective_status,
            total=invoice.total,
            amount_paid=invoice.amount_paid,
            balance=to_major(invoice.balance_minor),
            notes=invoice.notes,
            paid_date=invoice.paid_date,
            payment_method=invoice.payment_method.value if invoice.payment_method else None,
            client=PublicClientDetails(
                name=client.name,
                email=client.primary_email,
                address=client.address,
            ) if client else None,
            items=[
                PublicInvoiceItem(
                    description=item.description,
                    quantity=item.quantity,
                    price=to_major(item.unit_price_minor),
                    total=to_major(item.line_total_minor),
                )
                for item in invoice.items
            ],
        )
    except WorkflowError:
        raise
    except Exception:
        logger.error("Public invoice lookup failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch invoice")


@public_router.post("/update-payment-status", response_model=PaymentStatusResponse)
def update_payment_status(
    request: PaymentStatusRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentStatusResponse:
    """
    Mark an invoice PAID after checking its payment intent with Stripe.
    """
    try:
        invoice = payment_service.confirm_invoice_payment(request.invoice_id, request.payment_intent_id)
        return PaymentStatusResponse(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            status=invoice.status,
            message="Invoice payment status updated successfully",
        )
    except WorkflowError:
        raise
    except Exception:
        logger.error("Payment status update failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update payment status")
