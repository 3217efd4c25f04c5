import io
import json
import logging
import sys
from decimal import Decimal

import pytest

from app.core.config import build_settings
from app.core.errors import ConflictError, NumberingError, TokenError, ValidationError, WorkflowError
from app.core.logging import JSONFormatter, setup_logging
from app.core.money import format_money, to_major, to_minor


class TestMoney:
    """Test cases for minor-unit money helpers."""

    def test_to_major(self):
        assert to_major(150000) == Decimal("1500.00")
        assert to_major(1) == Decimal("0.01")

    @pytest.mark.parametrize(
        "major,minor",
        [(Decimal("1500"), 150000), (Decimal("1234.57"), 123457), (Decimal("0.005"), 1), ("19.99", 1999)],
    )
    def test_to_minor(self, major, minor):
        assert to_minor(major) == minor

    def test_format_money(self):
        assert format_money(123457) == "£1,234.57"
        assert format_money(0) == "£0.00"
        assert format_money(-500, "$") == "-$5.00"


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_public_message_defaults_per_class(self):
        error = TokenError("signature mismatch for inquiry 42")

        assert error.message == "signature mismatch for inquiry 42"
        assert error.public_message == "Invalid token"
        assert error.status_code == 403

    def test_explicit_public_message(self):
        error = ValidationError("Inquiry is NEW, expected QUOTED", public_message="Not available")
        assert error.public_message == "Not available"
        assert error.status_code == 400

    def test_numbering_error_is_conflict(self):
        error = NumberingError("bad suffix")
        assert isinstance(error, ConflictError)
        assert isinstance(error, WorkflowError)
        assert error.status_code == 409


class TestJSONFormatter:
    """Test cases for structured log output."""

    def make_record(self, **extra):
        logger = logging.getLogger("app.tests")
        return logger.makeRecord("app.tests", logging.INFO, __file__, 1, "Quote sent", (), None, extra=extra)

    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(self.make_record()))

        assert entry["level"] == "INFO"
        assert entry["logger_name"] == "app.tests"
        assert entry["message"] == "Quote sent"
        assert "timestamp" in entry
        assert "extra" not in entry

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(self.make_record(inquiry_id="abc", attempt=2)))

        assert entry["extra"] == {"inquiry_id": "abc", "attempt": "2"}

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.getLogger("app.tests").makeRecord(
                "app.tests", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]

    def test_setup_logging_is_idempotent(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            stream = io.StringIO()
            setup_logging("DEBUG", stream)
            setup_logging("INFO", stream)
            added = [h for h in root.handlers if h not in before]
            assert len([h for h in root.handlers if isinstance(h.formatter, JSONFormatter)]) == 1
            logging.getLogger("app.tests").info("hello", extra={"k": "v"})
            if added:
                assert json.loads(stream.getvalue().splitlines()[-1])["extra"] == {"k": "v"}
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level)


class TestSettings:
    """Test cases for settings helpers."""

    def test_admin_email_falls_back_to_mail_username(self):
        settings = build_settings(CONTACT_EMAIL="", MAIL_USERNAME="studio@example.com")
        assert settings.admin_email == "studio@example.com"

    def test_validate_email_config(self):
        with pytest.raises(ValueError):
            build_settings(MAIL_USERNAME="", MAIL_PASSWORD="").validate_email_config()
