"""Outbox visibility for administrators."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_outbox_service, require_admin
from app.models.api import OutboxTaskResponse
from app.models.enums import OutboxTaskStatus
from app.services import OutboxService

router = APIRouter(prefix="/outbox", tags=["outbox"], dependencies=[Depends(require_admin)])


@router.get("/tasks", response_model=List[OutboxTaskResponse])
def list_tasks(
    status: Optional[OutboxTaskStatus] = None,
    outbox_service: OutboxService = Depends(get_outbox_service),
) -> List[OutboxTaskResponse]:
    """
    List scheduled email tasks, newest first, optionally filtered by status.
    """
    try:
        return [
            OutboxTaskResponse(
                id=task.id,
                kind=task.kind,
                status=task.status,
                idempotency_key=task.idempotency_key,
                run_after=task.run_after,
                attempts=task.attempts,
                last_error=task.last_error,
                completed_at=task.completed_at,
            )
            for task in outbox_service.list_tasks(status)
        ]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
