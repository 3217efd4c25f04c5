"""Pure document generators for service agreements and invoice lines.

Nothing here reads the clock, the database or the environment: the same
input always yields byte-identical output. Agreement content is persisted
once and every later PDF render must match what the client was shown.
"""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Callable, Dict, List, Optional, Tuple

from app.core.errors import ValidationError
from app.core.money import format_money
from app.models.domain import Client, Inquiry
from app.models.enums import Timeline


@dataclass(frozen=True)
class ProviderDetails:
    """Service-provider identity printed on documents."""

    name: str
    tagline: str
    location: str
    jurisdiction: str
    currency_symbol: str = "£"

    @classmethod
    def from_settings(cls, settings) -> "ProviderDetails":
        return cls(
            name=settings.ACCOUNT_NAME,
            tagline=settings.PROVIDER_TAGLINE,
            location=settings.PROVIDER_LOCATION,
            jurisdiction=settings.JURISDICTION,
            currency_symbol=settings.CURRENCY_SYMBOL,
        )


@dataclass(frozen=True)
class AgreementSection:
    number: int
    key: str
    title: str


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price_minor: int


@dataclass(frozen=True)
class AgreementTerms:
    """Everything an agreement renders, flattened from client and project data."""

    client_name: str
    client_email: str
    client_address: str
    issued_on: date
    project_type: Optional[str] = None
    project_goal: Optional[str] = None
    target_audience: Optional[str] = None
    description: Optional[str] = None
    value_minor: Optional[int] = None
    timeline: Optional[str] = None
    title: Optional[str] = None


# (key, title, optional) in presentation order. Optional sections shift the
# numbers of every section after them.
SECTION_CATALOGUE: Tuple[Tuple[str, str, bool], ...] = (
    ("scope", "SCOPE OF SERVICES", False),
    ("value", "PROJECT VALUE & PAYMENT TERMS", True),
    ("payment", "PAYMENT TERMS", False),
    ("timeline", "PROJECT TIMELINE", True),
    ("ip", "INTELLECTUAL PROPERTY RIGHTS", False),
    ("responsibilities", "CLIENT RESPONSIBILITIES", False),
    ("revisions", "REVISIONS & ADDITIONAL WORK", False),
    ("liability", "LIMITATION OF LIABILITY", False),
    ("data_protection", "DATA PROTECTION & CONFIDENTIALITY", False),
    ("termination", "TERMINATION", False),
    ("force_majeure", "FORCE MAJEURE", False),
    ("governing_law", "GOVERNING LAW & JURISDICTION", False),
)

TIMELINE_RANGES = {
    Timeline.RUSH.value: "2-3 weeks",
    Timeline.NORMAL.value: "4-6 weeks",
}
DEFAULT_TIMELINE_RANGE = "6-8 weeks"


def agreement_sections(has_value: bool, has_timeline: bool) -> List[AgreementSection]:
    """Numbered section plan for an agreement with the given optional parts."""
    present = {"value": has_value, "timeline": has_timeline}
    sections = []
    for key, title, optional in SECTION_CATALOGUE:
        if optional and not present[key]:
            continue
        sections.append(AgreementSection(number=len(sections) + 1, key=key, title=title))
    return sections


def timeline_text(timeline: Optional[str]) -> str:
    value = timeline.value if isinstance(timeline, Timeline) else timeline
    return TIMELINE_RANGES.get(value, DEFAULT_TIMELINE_RANGE)


def split_deposit(total_minor: int) -> Tuple[int, int]:
    """50/50 split in minor units; the two parts always sum to the total."""
    deposit = total_minor // 2
    return deposit, total_minor - deposit


def terms_for_inquiry(client: Client, inquiry: Inquiry, issued_on: date) -> AgreementTerms:
    if inquiry.final_price_minor is None:
        raise ValidationError("No final price set for this inquiry")
    return AgreementTerms(
        client_name=client.name,
        client_email=client.primary_email,
        client_address=client.address,
        issued_on=issued_on,
        project_type=inquiry.project_type,
        project_goal=inquiry.project_goal,
        target_audience=inquiry.target_audience,
        value_minor=inquiry.final_price_minor,
        timeline=inquiry.timeline.value if inquiry.timeline else None,
    )


def render_agreement(client: Client, inquiry: Inquiry, issued_on: date, provider: ProviderDetails) -> str:
    """Agreement markup for an accepted inquiry."""
    return render_agreement_terms(terms_for_inquiry(client, inquiry, issued_on), provider)


def render_standalone_agreement(
    client: Client,
    title: str,
    description: Optional[str],
    estimated_value_minor: Optional[int],
    timeline: Optional[str],
    issued_on: date,
    provider: ProviderDetails,
) -> str:
    """Agreement markup for a manually created agreement with no inquiry."""
    terms = AgreementTerms(
        client_name=client.name,
        client_email=client.primary_email,
        client_address=client.address,
        issued_on=issued_on,
        description=description,
        value_minor=estimated_value_minor,
        timeline=timeline,
        title=title,
    )
    return render_agreement_terms(terms, provider)


def render_agreement_terms(terms: AgreementTerms, provider: ProviderDetails) -> str:
    sections = agreement_sections(
        has_value=terms.value_minor is not None,
        has_timeline=bool(terms.timeline),
    )
    issued = _format_date(terms.issued_on)

    parts = [
        '<article class="service-agreement">',
        f"<h1>{escape(provider.name)}</h1>",
        f"<p>{escape(provider.tagline)}</p>",
        "<h2>SERVICE AGREEMENT</h2>",
        f"<p><strong>{escape(terms.title)}</strong></p>" if terms.title else "",
        _parties_block(terms, provider, issued),
        _project_block(terms),
    ]
    for section in sections:
        body = _SECTION_BODIES[section.key](terms, provider)
        parts.append(
            f'<section data-key="{section.key}">'
            f"<h3>{section.number}. {escape(section.title)}</h3>{body}</section>"
        )
    parts.extend([
        "<h3>DIGITAL SIGNATURE &amp; AGREEMENT</h3>",
        "<p>This agreement may be executed electronically. Digital signatures are legally binding "
        "and equivalent to handwritten signatures under the Electronic Communications Act 2000.</p>",
        "<p><strong>By signing below, both parties acknowledge they have read, understood, and agree "
        "to be bound by all terms and conditions of this agreement.</strong></p>",
        _signature_block(terms, provider, issued),
        f"<p>This agreement consists of {len(sections)} sections and constitutes the entire "
        "agreement between the parties.</p>",
        "</article>",
    ])
    return "\n".join(parts)


def render_invoice_line_items(inquiry: Inquiry) -> List[LineItem]:
    """Exactly one line for the full project price."""
    if inquiry.final_price_minor is None:
        raise ValidationError("No final price set for this inquiry")
    return [
        LineItem(
            description=f"{inquiry.project_type} Website Development - {inquiry.project_goal}",
            quantity=1,
            unit_price_minor=inquiry.final_price_minor,
        )
    ]


def _format_date(value: date) -> str:
    return f"{value:%d/%m/%Y}"


def _address_lines(address: str) -> str:
    return "<br>".join(escape(line) for line in address.splitlines())


def _parties_block(terms: AgreementTerms, provider: ProviderDetails, issued: str) -> str:
    return (
        "<h3>PARTIES TO THIS AGREEMENT</h3>"
        f"<p><strong>Date of Agreement:</strong> {issued}</p>"
        f'<p><strong>Client ("you"):</strong><br>{escape(terms.client_name)}<br>'
        f"{escape(terms.client_email)}<br>{_address_lines(terms.client_address)}</p>"
        f'<p><strong>Service Provider ("we/us"):</strong><br>{escape(provider.name)}<br>'
        f"{escape(provider.tagline)}<br>{escape(provider.location)}</p>"
    )


def _project_block(terms: AgreementTerms) -> str:
    if terms.project_type:
        audience = terms.target_audience or "As discussed during consultation"
        return (
            "<h3>PROJECT DESCRIPTION</h3>"
            f"<p><strong>Project Type:</strong> {escape(terms.project_type)} Website</p>"
            f"<p><strong>Project Goal:</strong> {escape(terms.project_goal or '')}</p>"
            f"<p><strong>Target Audience:</strong> {escape(audience)}</p>"
        )
    if terms.description:
        return f"<h3>PROJECT DESCRIPTION</h3><p>{escape(terms.description)}</p>"
    return ""


def _list(items: List[str]) -> str:
    return "<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>"


def _scope(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return "<p>We agree to provide professional web development services including, but not limited to:</p>" + _list([
        "Website design and user interface development",
        "Frontend and backend development as specified",
        "Responsive design for mobile and desktop devices",
        "Content management system implementation (where applicable)",
        "Search engine optimisation (basic on-page SEO)",
        "Cross-browser compatibility testing",
        "Performance optimisation",
        "Documentation and training materials",
        "Post-launch support as specified in project scope",
        "Project management and regular progress updates",
    ])


def _value(terms: AgreementTerms, provider: ProviderDetails) -> str:
    amount = format_money(terms.value_minor, provider.currency_symbol)
    return (
        f"<p><strong>Total Project Value:</strong> {amount}</p>"
        "<p>Fixed price for complete project as specified</p>"
    )


def _payment(terms: AgreementTerms, provider: ProviderDetails) -> str:
    if terms.value_minor is None:
        deposit_line = "<strong>Deposit:</strong> 50% of total project value required before commencement of work"
        balance_line = "<strong>Final Payment:</strong> 50% balance due upon project completion and delivery"
    else:
        deposit, balance = split_deposit(terms.value_minor)
        deposit_line = (
            "<strong>Deposit:</strong> 50% of total project value "
            f"({format_money(deposit, provider.currency_symbol)}) required before commencement of work"
        )
        balance_line = (
            f"<strong>Final Payment:</strong> 50% balance ({format_money(balance, provider.currency_symbol)}) "
            "due upon project completion and delivery"
        )
    return _list([
        deposit_line,
        balance_line,
        "<strong>Payment Terms:</strong> Net 30 days from invoice date",
        "<strong>Late Payment:</strong> Interest charges of 1.5% per month on overdue amounts",
        "<strong>Methods:</strong> Bank transfer or online payment via secure payment link",
    ])


def _timeline(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        f"<p><strong>Estimated Timeline:</strong> {timeline_text(terms.timeline)}</p>"
        "<p>Timeline commences upon receipt of deposit payment and all required assets/content from client.</p>"
    )


def _ip(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p><strong>Client Ownership:</strong> Upon full payment of all invoices, "
        f"{escape(terms.client_name)} will own all rights, title, and interest in the work product "
        "created specifically for this project.</p>"
        "<p><strong>Service Provider Rights:</strong> We retain rights to:</p>"
        + _list([
            "General methodologies, frameworks, and development techniques",
            "Pre-existing intellectual property and open-source components",
            "Portfolio rights to display completed work for marketing purposes",
        ])
        + "<p><strong>Third-Party Components:</strong> Any third-party software, plugins, or components "
        "remain subject to their respective licenses.</p>"
    )


def _responsibilities(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return _list([
        "Provide all required content, images, and materials in a timely manner",
        "Respond to requests for feedback and approval within 5 business days",
        "Ensure all provided content is legally owned and properly licensed",
        "Provide access to hosting accounts, domain registrars, and third-party services as needed",
        "Test and review deliverables thoroughly before final approval",
    ])


def _revisions(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p><strong>Included Revisions:</strong> Up to 3 rounds of reasonable revisions are included.</p>"
        "<p><strong>Additional Work:</strong> Any work beyond the agreed scope will be quoted separately.</p>"
        "<p><strong>Major Changes:</strong> Significant scope changes may require a new project agreement "
        "and timeline adjustment.</p>"
    )


def _liability(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p>Our liability is limited to the total amount paid under this agreement. We shall not be liable "
        "for any indirect, consequential, or incidental damages, including but not limited to loss of "
        "profits, data, or business opportunities.</p>"
    )


def _data_protection(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p><strong>GDPR Compliance:</strong> We will process personal data in accordance with UK GDPR "
        "and the Data Protection Act 2018.</p>"
        "<p><strong>Confidentiality:</strong> Both parties agree to keep confidential all proprietary "
        "information shared during this engagement.</p>"
    )


def _termination(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p><strong>By Client:</strong> You may terminate this agreement with 7 days written notice. "
        "Payment is due for all work completed to date.</p>"
        "<p><strong>By Service Provider:</strong> We may terminate for non-payment or material breach "
        "with 30 days written notice.</p>"
    )


def _force_majeure(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        "<p>Neither party shall be liable for delays or failure to perform due to causes beyond "
        "reasonable control.</p>"
    )


def _governing_law(terms: AgreementTerms, provider: ProviderDetails) -> str:
    return (
        f"<p>This agreement is governed by the laws of {escape(provider.jurisdiction)}.</p>"
        "<p>Both parties agree to attempt resolution through mediation before pursuing litigation.</p>"
    )


def _signature_block(terms: AgreementTerms, provider: ProviderDetails, issued: str) -> str:
    return (
        '<div class="signatures">'
        f"<p>{escape(terms.client_name)}<br>Client Signature<br>Date: _____________</p>"
        f"<p>{escape(provider.name)}<br>Service Provider<br>Date: {issued}</p>"
        "</div>"
    )


_SECTION_BODIES: Dict[str, Callable[[AgreementTerms, ProviderDetails], str]] = {
    "scope": _scope,
    "value": _value,
    "payment": _payment,
    "timeline": _timeline,
    "ip": _ip,
    "responsibilities": _responsibilities,
    "revisions": _revisions,
    "liability": _liability,
    "data_protection": _data_protection,
    "termination": _termination,
    "force_majeure": _force_majeure,
    "governing_law": _governing_law,
}
