"""PDF rendering for invoices and signed agreements (reportlab platypus)."""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from html import escape
from html.parser import HTMLParser
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.money import format_money
from app.models.domain import Client, Invoice, LegalDocument
from app.services.document_generators import ProviderDetails

logger = logging.getLogger(__name__)

DARK = colors.HexColor("#1f2937")
MUTED = colors.HexColor("#6b7280")
RULE = colors.HexColor("#d1d5db")

_SIGNATURE_PREFIX = "data:image/png;base64,"


@dataclass(frozen=True)
class BankDetails:
    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    sort_code: str = ""

    @classmethod
    def from_settings(cls, settings) -> "BankDetails":
        return cls(
            bank_name=settings.BANK_NAME,
            account_name=settings.ACCOUNT_NAME,
            account_number=settings.ACCOUNT_NUMBER,
            sort_code=settings.SORT_CODE,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.bank_name and self.account_number and self.sort_code)


def _styles() -> dict:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("Title", parent=base["Normal"], fontName="Helvetica-Bold",
                                fontSize=18, textColor=DARK, alignment=TA_CENTER, spaceAfter=4),
        "subtitle": ParagraphStyle("Subtitle", parent=base["Normal"], fontSize=9,
                                   textColor=MUTED, alignment=TA_CENTER, spaceAfter=10),
        "heading": ParagraphStyle("Heading", parent=base["Normal"], fontName="Helvetica-Bold",
                                  fontSize=13, textColor=DARK, alignment=TA_CENTER, spaceBefore=6, spaceAfter=6),
        "section": ParagraphStyle("Section", parent=base["Normal"], fontName="Helvetica-Bold",
                                  fontSize=10.5, textColor=DARK, spaceBefore=10, spaceAfter=4),
        "body": ParagraphStyle("Body", parent=base["Normal"], fontSize=9, leading=13, spaceAfter=5),
        "bullet": ParagraphStyle("Bullet", parent=base["Normal"], fontSize=9, leading=13,
                                 leftIndent=12, bulletIndent=2, spaceAfter=2),
        "right": ParagraphStyle("Right", parent=base["Normal"], fontSize=9, alignment=TA_RIGHT),
    }


def _new_document(buffer: io.BytesIO, title: str) -> SimpleDocTemplate:
    return SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=title,
    )


class _AgreementBlocks(HTMLParser):
    """Flatten stored agreement markup into (style, inline-markup) blocks.

    Only the tags the agreement generator emits are recognised; the inline
    text is re-escaped for reportlab's paragraph mini-language.
    """

    _BLOCK_STYLES = {"h1": "title", "h2": "heading", "h3": "section", "p": "body", "li": "bullet"}
    _INLINE = {"strong": "b", "b": "b", "em": "i", "i": "i"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.blocks: List[Tuple[str, str]] = []
        self._style: Optional[str] = None
        self._parts: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag in self._BLOCK_STYLES:
            self._flush()
            self._style = self._BLOCK_STYLES[tag]
        elif tag == "br" and self._style:
            self._parts.append("<br/>")
        elif tag in self._INLINE and self._style:
            self._parts.append(f"<{self._INLINE[tag]}>")

    def handle_endtag(self, tag):
        if tag in self._BLOCK_STYLES:
            self._flush()
        elif tag in self._INLINE and self._style:
            self._parts.append(f"</{self._INLINE[tag]}>")

    def handle_data(self, data):
        if self._style:
            self._parts.append(escape(data, quote=False))

    def _flush(self):
        text = "".join(self._parts).strip()
        if self._style and text:
            self.blocks.append((self._style, text))
        self._style = None
        self._parts = []

    def close(self):
        super().close()
        self._flush()


def agreement_blocks(content: str) -> List[Tuple[str, str]]:
    parser = _AgreementBlocks()
    parser.feed(content)
    parser.close()
    return parser.blocks


def _signature_flowable(signature: str, styles: dict):
    """Embed a PNG data-URL signature, or print a typed signature as text."""
    if signature.startswith(_SIGNATURE_PREFIX):
        try:
            raw = base64.b64decode(signature[len(_SIGNATURE_PREFIX):], validate=True)
            return Image(io.BytesIO(raw), width=60 * mm, height=20 * mm, kind="proportional")
        except (binascii.Error, ValueError):
            logger.warning("Stored signature is not valid base64, rendering as text")
    return Paragraph(f"<i>{escape(signature[:200])}</i>", styles["body"])


def render_agreement_pdf(document: LegalDocument, client: Client) -> bytes:
    """Render the persisted agreement content, plus the signature once signed."""
    styles = _styles()
    buffer = io.BytesIO()
    doc = _new_document(buffer, document.title)

    elements = [
        Paragraph(f"Agreement No. {escape(document.document_number)}", styles["subtitle"]),
    ]
    for style, text in agreement_blocks(document.content):
        if style == "bullet":
            elements.append(Paragraph(text, styles["bullet"], bulletText="•"))
        else:
            elements.append(Paragraph(text, styles[style]))

    if document.client_signature:
        signed_on = document.acknowledged_at.strftime("%d/%m/%Y %H:%M UTC") if document.acknowledged_at else ""
        elements.extend([
            Spacer(1, 6 * mm),
            Paragraph("CLIENT SIGNATURE", styles["section"]),
            _signature_flowable(document.client_signature, styles),
            Paragraph(f"Signed by {escape(client.name)} on {signed_on}", styles["body"]),
        ])

    doc.build(elements)
    return buffer.getvalue()


def render_invoice_pdf(
    invoice: Invoice,
    client: Client,
    provider: ProviderDetails,
    bank: Optional[BankDetails] = None,
) -> bytes:
    styles = _styles()
    symbol = provider.currency_symbol
    buffer = io.BytesIO()
    doc = _new_document(buffer, f"Invoice {invoice.invoice_number}")

    elements = [
        Paragraph(escape(provider.name), styles["title"]),
        Paragraph(escape(provider.tagline), styles["subtitle"]),
        Paragraph(f"INVOICE {escape(invoice.invoice_number)}", styles["heading"]),
    ]

    meta = Table(
        [
            [Paragraph("<b>Bill To</b>", styles["body"]), Paragraph("<b>Details</b>", styles["body"])],
            [
                Paragraph(
                    "<br/>".join([escape(client.name), escape(client.primary_email)]
                                 + [escape(line) for line in client.address.splitlines()]),
                    styles["body"],
                ),
                Paragraph(
                    f"Issue date: {invoice.issue_date:%d/%m/%Y}<br/>"
                    f"Due date: {invoice.due_date:%d/%m/%Y}<br/>"
                    f"Status: {invoice.status.value}",
                    styles["body"],
                ),
            ],
        ],
        colWidths=[90 * mm, 84 * mm],
    )
    meta.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.extend([meta, Spacer(1, 6 * mm)])

    rows = [["Description", "Qty", "Unit price", "Amount"]]
    for item in invoice.items:
        rows.append([
            Paragraph(escape(item.description), styles["body"]),
            str(item.quantity),
            format_money(item.unit_price_minor, symbol),
            format_money(item.line_total_minor, symbol),
        ])
    rows.append(["", "", "Total", format_money(invoice.total_minor, symbol)])
    rows.append(["", "", "Paid", format_money(invoice.amount_paid_minor, symbol)])
    rows.append(["", "", "Balance due", format_money(invoice.balance_minor, symbol)])

    items = Table(rows, colWidths=[96 * mm, 14 * mm, 32 * mm, 32 * mm], repeatRows=1)
    items.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, DARK),
        ("LINEABOVE", (2, -3), (-1, -3), 0.5, RULE),
        ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
    ]))
    elements.extend([items, Spacer(1, 8 * mm)])

    if bank and bank.is_complete:
        elements.append(Paragraph("Payment by bank transfer", styles["section"]))
        elements.append(Paragraph(
            f"Bank: {escape(bank.bank_name)}<br/>Account name: {escape(bank.account_name)}<br/>"
            f"Account number: {escape(bank.account_number)}<br/>Sort code: {escape(bank.sort_code)}<br/>"
            f"Reference: {escape(invoice.invoice_number)}",
            styles["body"],
        ))
    if invoice.notes:
        elements.append(Paragraph("Notes", styles["section"]))
        elements.append(Paragraph(escape(invoice.notes), styles["body"]))

    doc.build(elements)
    return buffer.getvalue()
