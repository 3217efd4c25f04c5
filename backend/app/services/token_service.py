"""Stateless capability tokens for public quote acceptance links."""

import hashlib
import hmac
from typing import Optional, Union
from uuid import UUID


class QuoteTokenService:
    """Derive and check HMAC-SHA256 tokens bound to an inquiry id.

    Nothing is persisted: a token stays valid until the secret rotates, so
    callers must still check the inquiry's status before acting on it.
    """

    def __init__(self, secret: str, length: int = 16):
        if not secret:
            raise ValueError("Quote token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.length = length

    def token_for(self, inquiry_id: Union[UUID, str]) -> str:
        digest = hmac.new(self._secret, str(inquiry_id).encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()[: self.length]

    def verify(self, inquiry_id: Union[UUID, str], supplied_token: Optional[str]) -> bool:
        if not supplied_token:
            return False
        expected = self.token_for(inquiry_id).encode("utf-8")
        return hmac.compare_digest(expected, supplied_token.encode("utf-8"))
