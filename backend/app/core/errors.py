"""Error taxonomy for the quote-to-cash workflow.

Every error carries two messages: ``message`` is the full detail surfaced to
admin callers and logs, ``public_message`` is the generic text returned on
public (token or document-id gated) endpoints.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all expected workflow failures."""

    status_code: int = 500
    default_public_message: str = "Request could not be completed"

    def __init__(self, message: str, public_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.public_message = public_message or self.default_public_message


class ValidationError(WorkflowError):
    """Missing or invalid input, or a transition the current state forbids."""

    status_code = 400
    default_public_message = "Invalid request"


class TokenError(WorkflowError):
    """Capability token did not verify."""

    status_code = 403
    default_public_message = "Invalid token"


class NotAvailableError(WorkflowError):
    """Resource exists but is not in a state that allows the action."""

    status_code = 403
    default_public_message = "Not available"


class NotFoundError(WorkflowError):
    status_code = 404
    default_public_message = "Not found"


class ConflictError(WorkflowError):
    """Action was already performed, or a concurrent writer won."""

    status_code = 409
    default_public_message = "Conflict"


class NumberingError(ConflictError):
    """A document number could not be issued."""


class DispatchError(WorkflowError):
    """Outbound email failed."""

    status_code = 502
    default_public_message = "Notification could not be sent"


class PaymentProviderError(WorkflowError):
    status_code = 502
    default_public_message = "Payment provider error"


class WebhookSignatureError(WorkflowError):
    """Webhook payload failed provider signature verification."""

    status_code = 400
    default_public_message = "Invalid signature"
