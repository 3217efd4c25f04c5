"""Subject and body templates for every outbound email kind.

Each template takes a flat ``data`` mapping of already-formatted values
(money strings, dd/mm/yyyy dates, absolute URLs) and returns plain-text and
HTML bodies. Values are HTML-escaped here, never by the caller.
"""

from dataclasses import dataclass
from html import escape
from typing import Callable, Dict, Mapping

from app.models.enums import EmailKind


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


Template = Callable[[Mapping[str, str]], RenderedEmail]

_TEMPLATES: Dict[EmailKind, Template] = {}


def template(kind: EmailKind):
    def register(func: Template) -> Template:
        _TEMPLATES[kind] = func
        return func

    return register


def render(kind: EmailKind, data: Mapping[str, str]) -> RenderedEmail:
    """Render ``kind``; raises KeyError for an unknown kind or missing field."""
    return _TEMPLATES[kind](data)


def registered_kinds():
    return set(_TEMPLATES)


def _html(paragraphs, action_url=None, action_label=None) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    if action_url:
        body += f'<p><a href="{escape(action_url)}">{escape(action_label or action_url)}</a></p>'
    return f"<html><body>{body}</body></html>"


@template(EmailKind.QUOTE)
def quote(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    notes_text = f"\n\nNotes:\n{data['notes']}" if data.get("notes") else ""
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Thank you for your interest in a {data['project_type']} website. "
        f"Our quote for the project is {data['price']}.{notes_text}\n\n"
        f"To accept this quote, visit:\n{data['accept_url']}\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    paragraphs = [
        f"Hi {e['client_name']},",
        f"Thank you for your interest in a {e['project_type']} website. "
        f"Our quote for the project is <strong>{e['price']}</strong>.",
    ]
    if data.get("notes"):
        paragraphs.append(f"<strong>Notes:</strong> {e['notes']}")
    paragraphs.append("Accepting the quote will prepare your service agreement and invoice.")
    return RenderedEmail(
        subject=f"Your quote for a {data['project_type']} website",
        text=text,
        html=_html(paragraphs, data["accept_url"], "Accept quote"),
    )


@template(EmailKind.ACCEPTANCE_CONFIRMATION)
def acceptance_confirmation(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Thank you for accepting our quote for your {data['project_type']} website.\n\n"
        f"Your service agreement ({data['document_number']}) will arrive shortly for signature, "
        f"followed by invoice {data['invoice_number']} for {data['total']}.\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject="Quote accepted - next steps",
        text=text,
        html=_html([
            f"Hi {e['client_name']},",
            f"Thank you for accepting our quote for your {e['project_type']} website.",
            f"Your service agreement ({e['document_number']}) will arrive shortly for signature, "
            f"followed by invoice {e['invoice_number']} for {e['total']}.",
        ]),
    )


@template(EmailKind.SIGNING_LINK)
def signing_link(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Your {data['title']} ({data['document_number']}) is ready for review and signature:\n"
        f"{data['sign_url']}\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject=f"Please sign: {data['title']}",
        text=text,
        html=_html(
            [
                f"Hi {e['client_name']},",
                f"Your {e['title']} ({e['document_number']}) is ready for review and signature.",
            ],
            data["sign_url"],
            "Review and sign",
        ),
    )


@template(EmailKind.INVOICE_NOTICE)
def invoice_notice(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Invoice {data['invoice_number']} for {data['total']} has been prepared for your project "
        f"and is due on {data['due_date']}. It will be sent to you once the service agreement is signed.\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject=f"Invoice {data['invoice_number']} prepared",
        text=text,
        html=_html([
            f"Hi {e['client_name']},",
            f"Invoice {e['invoice_number']} for <strong>{e['total']}</strong> has been prepared "
            f"and is due on {e['due_date']}.",
            "It will be sent to you once the service agreement is signed.",
        ]),
    )


@template(EmailKind.SIGNED_CLIENT)
def signed_client(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Thank you for signing {data['title']} ({data['document_number']}) on {data['signed_at']}.\n"
        f"Your invoice will follow shortly.\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject=f"Signed: {data['title']}",
        text=text,
        html=_html([
            f"Hi {e['client_name']},",
            f"Thank you for signing {e['title']} ({e['document_number']}) on {e['signed_at']}.",
            "Your invoice will follow shortly.",
        ]),
    )


@template(EmailKind.SIGNED_ADMIN)
def signed_admin(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"{data['client_name']} <{data['client_email']}> signed "
        f"{data['title']} ({data['document_number']}) on {data['signed_at']}."
    )
    return RenderedEmail(
        subject=f"Agreement signed: {data['document_number']}",
        text=text,
        html=_html([
            f"{e['client_name']} &lt;{e['client_email']}&gt; signed "
            f"{e['title']} ({e['document_number']}) on {e['signed_at']}.",
        ]),
    )


@template(EmailKind.INVOICE)
def invoice(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"Please find attached invoice {data['invoice_number']} for {data['total']}, "
        f"due on {data['due_date']}.\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject=f"Invoice {data['invoice_number']}",
        text=text,
        html=_html([
            f"Hi {e['client_name']},",
            f"Please find attached invoice {e['invoice_number']} for <strong>{e['total']}</strong>, "
            f"due on {e['due_date']}.",
        ]),
    )


@template(EmailKind.INVOICE_REMINDER)
def invoice_reminder(data: Mapping[str, str]) -> RenderedEmail:
    e = {k: escape(str(v)) for k, v in data.items()}
    text = (
        f"Hi {data['client_name']},\n\n"
        f"This is a reminder that invoice {data['invoice_number']} has an outstanding balance of "
        f"{data['balance']}, due on {data['due_date']}. A copy is attached.\n\n"
        f"Kind regards,\n{data['provider_name']}"
    )
    return RenderedEmail(
        subject=f"Payment reminder: invoice {data['invoice_number']}",
        text=text,
        html=_html([
            f"Hi {e['client_name']},",
            f"This is a reminder that invoice {e['invoice_number']} has an outstanding balance of "
            f"<strong>{e['balance']}</strong>, due on {e['due_date']}.",
            "A copy is attached.",
        ]),
    )
