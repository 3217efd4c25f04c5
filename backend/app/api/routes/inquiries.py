"""Inquiry API endpoints: quoting and public quote acceptance."""

import logging
from html import escape
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from app.api.deps import get_inquiry_service, get_workflow, require_admin
from app.core.errors import WorkflowError
from app.core.money import format_money, to_major, to_minor
from app.models.api import InquiryResponse, InquiryUpdateRequest, SendQuoteRequest, SendQuoteResponse
from app.models.domain import Inquiry
from app.services import InquiryService, QuoteWorkflowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inquiries", tags=["inquiries"])


def _inquiry_response(inquiry: Inquiry) -> InquiryResponse:
    return InquiryResponse(
        id=inquiry.id,
        name=inquiry.name,
        email=inquiry.email,
        company=inquiry.company,
        project_type=inquiry.project_type,
        project_goal=inquiry.project_goal,
        timeline=inquiry.timeline,
        status=inquiry.status,
        final_price=to_major(inquiry.final_price_minor) if inquiry.final_price_minor is not None else None,
        quoted_at=inquiry.quoted_at,
        converted_to_client_id=inquiry.converted_to_client_id,
    )


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title></head>"
        f"<body><main><h1>{escape(title)}</h1>{body}</main></body></html>"
    )
    return HTMLResponse(content=html, status_code=status_code)


@router.post("/send-quote", response_model=SendQuoteResponse, dependencies=[Depends(require_admin)])
def send_quote(
    request: SendQuoteRequest,
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> SendQuoteResponse:
    """
    Email the client a quote with a signed acceptance link.
    """
    try:
        price_minor = to_minor(request.final_price) if request.final_price is not None else None
        result = workflow.send_quote(request.inquiry_id, request.client_id, price_minor, request.notes)
        return SendQuoteResponse(
            inquiry_id=result.inquiry.id,
            accept_url=result.accept_url,
            message_id=result.receipt.message_id,
        )
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.get("/accept-quote", response_class=HTMLResponse)
def accept_quote(
    id: UUID = Query(...),
    token: str = Query(default=""),
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> HTMLResponse:
    """
    Public landing page for the acceptance link in the quote email.
    """
    try:
        result = workflow.accept_quote(id, token)
    except WorkflowError as e:
        return _page("Unable to accept quote", f"<p>{escape(e.public_message)}</p>", status_code=e.status_code)
    except Exception:
        logger.error("Quote acceptance failed", extra={"inquiry_id": str(id)}, exc_info=True)
        return _page("Unable to accept quote", "<p>Something went wrong. Please try again later.</p>", 500)

    total = format_money(result.invoice.total_minor, workflow.provider.currency_symbol)
    return _page(
        "Quote accepted",
        f"<p>Thank you, {escape(result.client.name)}. Your quote for {escape(result.inquiry.project_type)} "
        f"has been accepted.</p>"
        f"<p>Your service agreement <strong>{escape(result.document.document_number)}</strong> "
        "will be emailed to you shortly for signature.</p>"
        f"<p>Invoice <strong>{escape(result.invoice.invoice_number)}</strong> for {escape(total)} "
        "will follow once the agreement is signed.</p>",
    )


@router.patch("/{inquiry_id}", response_model=InquiryResponse, dependencies=[Depends(require_admin)])
def update_inquiry(
    inquiry_id: UUID,
    request: InquiryUpdateRequest,
    inquiry_service: InquiryService = Depends(get_inquiry_service),
) -> InquiryResponse:
    try:
        inquiry = inquiry_service.update_inquiry(
            inquiry_id,
            status=request.status,
            final_price_minor=to_minor(request.final_price) if request.final_price is not None else None,
            converted_to_client_id=request.converted_to_client_id,
        )
        return _inquiry_response(inquiry)
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
