#!/usr/bin/env python3
"""
Seed data script for the quote-to-cash backend.
Applies migrations, then adds a demo client and a QUOTED inquiry ready for acceptance.
"""

import logging
import subprocess
import sys
from pathlib import Path

from sqlmodel import Session, select

from app.core.config import settings
from app.core.db import engine
from app.core.logging import setup_logging
from app.models.domain import Inquiry
from app.models.enums import InquiryStatus, Timeline
from app.services import ClientService, InquiryService
from app.services.token_service import QuoteTokenService

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo.client@example.com"


def run_migrations():
    """Run alembic upgrade head."""
    try:
        logger.info("Running migrations...")
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=Path(__file__).parent.parent,
            capture_output=True,
            text=True,
            check=True
        )
        logger.info("Migration completed successfully", extra={"output": result.stdout})
        return True
    except subprocess.CalledProcessError as e:
        logger.error("Migration failed", extra={"stderr": e.stderr})
        return False


def seed_demo_records(session: Session) -> Inquiry:
    """Create the demo client and quoted inquiry unless they already exist."""
    existing = session.exec(select(Inquiry).where(Inquiry.email == DEMO_EMAIL)).first()
    if existing is not None:
        logger.info("Demo records already present", extra={"inquiry_id": str(existing.id)})
        return existing

    client = ClientService(session).create_client(
        "Demo Client Ltd",
        [DEMO_EMAIL],
        "1 Example Street\nLondon\nEC1A 1AA",
    )
    inquiry = Inquiry(
        name="Demo Client",
        email=DEMO_EMAIL,
        company="Demo Client Ltd",
        project_type="E-commerce",
        project_goal="Sell handmade goods online",
        target_audience="UK craft buyers",
        timeline=Timeline.NORMAL,
    )
    session.add(inquiry)
    session.commit()

    return InquiryService(session).update_inquiry(
        inquiry.id,
        status=InquiryStatus.QUOTED,
        final_price_minor=150000,
        converted_to_client_id=client.id,
    )


def main():
    """Main function."""
    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting seed data script...")

    if not run_migrations():
        sys.exit(1)

    with Session(engine) as session:
        inquiry = seed_demo_records(session)

    secret = settings.QUOTE_TOKEN_SECRET.get_secret_value()
    if secret:
        token = QuoteTokenService(secret, settings.QUOTE_TOKEN_LENGTH).token_for(inquiry.id)
        logger.info(
            "Demo acceptance link",
            extra={"url": f"{settings.BASE_URL}{settings.API_V1_STR}/inquiries/accept-quote?id={inquiry.id}&token={token}"},
        )
    logger.info("Seed data script completed successfully")


if __name__ == "__main__":
    main()
