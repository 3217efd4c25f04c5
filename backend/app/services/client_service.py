"""Client persistence boundary: the only place raw email input is normalized."""

import logging
import re
from typing import Iterable, List, Optional, Union
from uuid import UUID

from sqlmodel import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.domain import Client

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_emails(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Turn a single address, a comma-separated string or a list into a clean list.

    Order is preserved (the first address is the primary one) and duplicates
    are dropped case-insensitively.
    """
    if raw is None:
        candidates: List[str] = []
    elif isinstance(raw, str):
        candidates = raw.split(",")
    else:
        candidates = list(raw)

    emails: List[str] = []
    seen = set()
    for candidate in candidates:
        address = (candidate or "").strip()
        if not address:
            continue
        if not _EMAIL_RE.match(address):
            raise ValidationError(f"Invalid email address: {address}")
        if address.lower() in seen:
            continue
        seen.add(address.lower())
        emails.append(address)

    if not emails:
        raise ValidationError("Client must have at least one email address")
    return emails


class ClientService:
    def __init__(self, session: Session):
        self.session = session

    def create_client(self, name: str, emails: Union[str, Iterable[str]], address: str) -> Client:
        if not name or not name.strip():
            raise ValidationError("Client name is required")
        client = Client(name=name.strip(), emails=normalize_emails(emails), address=address or "")
        self.session.add(client)
        self.session.commit()
        self.session.refresh(client)
        logger.info("Client created", extra={"client_id": str(client.id)})
        return client

    def get_client(self, client_id: Optional[UUID]) -> Client:
        client = self.session.get(Client, client_id) if client_id else None
        if client is None:
            raise NotFoundError(f"Client {client_id} not found", public_message="Client not found")
        return client
