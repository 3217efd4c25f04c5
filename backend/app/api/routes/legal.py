"""Legal document API endpoints: agreement creation, sending and public signing."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlmodel import Session

from app.api.deps import get_db, get_workflow, require_admin
from app.core.errors import NotFoundError, WorkflowError
from app.core.money import to_minor
from app.models.api import (
    CreateAgreementRequest,
    LegalDocumentResponse,
    PublicLegalDocumentResponse,
    SendLegalDocumentRequest,
    SignDocumentRequest,
    SignDocumentResponse,
)
from app.models.domain import LegalDocument
from app.models.enums import LegalDocumentStatus
from app.services import QuoteWorkflowService
from app.services.pdf_service import render_agreement_pdf

router = APIRouter(prefix="/legal", tags=["legal"])


def _document_response(document: LegalDocument) -> LegalDocumentResponse:
    return LegalDocumentResponse(
        id=document.id,
        document_number=document.document_number,
        title=document.title,
        status=document.status,
        client_id=document.client_id,
        inquiry_id=document.inquiry_id,
        sent_at=document.sent_at,
        acknowledged_at=document.acknowledged_at,
        created_at=document.created_at,
    )


def _public_document(session: Session, document_id: UUID) -> LegalDocument:
    """Documents are visible publicly only once they have been sent."""
    document = session.get(LegalDocument, document_id)
    if document is None or document.status == LegalDocumentStatus.DRAFT:
        raise NotFoundError(f"Document {document_id} not found", public_message="Document not found")
    return document


@router.post("/create", response_model=LegalDocumentResponse, dependencies=[Depends(require_admin)])
def create_agreement(
    request: CreateAgreementRequest,
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> LegalDocumentResponse:
    """
    Create a standalone DRAFT service agreement for an existing client.
    """
    try:
        document = workflow.create_service_agreement(
            request.client_id,
            request.title,
            description=request.description,
            estimated_value_minor=to_minor(request.estimated_value) if request.estimated_value is not None else None,
            timeline=request.timeline.value if request.timeline else None,
        )
        return _document_response(document)
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/send", response_model=LegalDocumentResponse, dependencies=[Depends(require_admin)])
def send_document(
    request: SendLegalDocumentRequest,
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> LegalDocumentResponse:
    """
    Email the signing link for a document to its client.
    """
    try:
        return _document_response(workflow.send_legal_document(request.document_id))
    except WorkflowError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.get("/public/{document_id}", response_model=PublicLegalDocumentResponse)
def get_public_document(document_id: UUID, session: Session = Depends(get_db)) -> PublicLegalDocumentResponse:
    try:
        document = _public_document(session, document_id)
        return PublicLegalDocumentResponse(
            id=document.id,
            document_number=document.document_number,
            title=document.title,
            content=document.content,
            status=document.status,
            client_name=document.client.name,
            jurisdiction=document.jurisdiction,
            acknowledged_at=document.acknowledged_at,
            created_at=document.created_at,
        )
    except WorkflowError:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/public/{document_id}/pdf")
def get_public_document_pdf(document_id: UUID, session: Session = Depends(get_db)) -> Response:
    try:
        document = _public_document(session, document_id)
        pdf = render_agreement_pdf(document, document.client)
    except WorkflowError:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Internal server error")

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.document_number}.pdf"'},
    )


@router.post("/public/{document_id}/sign", response_model=SignDocumentResponse)
def sign_document(
    document_id: UUID,
    request: SignDocumentRequest,
    workflow: QuoteWorkflowService = Depends(get_workflow),
) -> SignDocumentResponse:
    """
    Record the client's signature on a SENT document.
    """
    try:
        result = workflow.sign_document(document_id, request.signature)
        return SignDocumentResponse(
            document_id=result.document.id,
            status=result.document.status,
            acknowledged_at=result.document.acknowledged_at,
        )
    except WorkflowError:
        raise
    except Exception:
        raise HTTPException(status_code=500, detail="Internal server error")
