"""Tests for approval notification delivery."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from quotedesk.core.approval.errors import SendError
from quotedesk.core.approval.states import TemplateKind
from quotedesk.core.config import Settings
from quotedesk.db.models import NotificationLog
from quotedesk.services.notifications import NotificationService, is_webhook_channel

from tests.factories import create_case


def make_settings(**overrides) -> Settings:
    values = {
        "app_base_url": "https://quotes.example.com",
        "smtp_host": "smtp.example.com",
        "environment": "production",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def case(db_session):
    return create_case(db_session, subject="Conveyor retrofit")


class TestEmail:
    def test_forward_email(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        context = {"case_key": case.case_key, "tier": "applicant", "approved_by": "Sato", "resend": False}

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()) as deliver:
            asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, context))

        to_email, subject, text, html = deliver.await_args.args
        assert to_email == "sectionhead@example.com"
        assert subject == "[Approval request] Conveyor retrofit"
        assert "Sato has approved this case." in text
        assert "Next approver: section head" in text
        assert f"https://quotes.example.com/cases/approval/{case.case_key}" in text
        assert "Open approval page" in html

        log = db_session.query(NotificationLog).one()
        assert log.status == "sent"
        assert log.template_kind == "forward"
        assert log.attempts == 1

    def test_resend_subject(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        context = {"case_key": case.case_key, "tier": "section_head", "resend": True}

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()) as deliver:
            asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, context))

        subject = deliver.await_args.args[1]
        assert subject == "[Reminder][Approval request] Conveyor retrofit"
        assert "Next approver: section head" in deliver.await_args.args[2]

    def test_rejection_email(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        context = {"case_key": case.case_key, "tier": "director", "rejected_by": "Director Ito"}

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()) as deliver:
            asyncio.run(service.send("applicant@example.com", TemplateKind.REJECTION, context))

        _, subject, text, _ = deliver.await_args.args
        assert subject == "[Returned] Conveyor retrofit"
        assert "returned by Director Ito" in text

    def test_dev_redirect(self, db_session, case):
        settings = make_settings(environment="development", dev_email_to="dev@example.com")
        service = NotificationService(db_session, settings)
        context = {"case_key": case.case_key, "tier": "applicant"}

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()) as deliver:
            asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, context))

        to_email, subject, _, html = deliver.await_args.args
        assert to_email == "dev@example.com"
        assert subject.startswith("[DEV - intended for sectionhead@example.com]")
        assert "sectionhead@example.com" in html

    def test_html_is_escaped(self, db_session):
        case = create_case(db_session, subject="<b>Pumps</b>")
        service = NotificationService(db_session, make_settings())

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()) as deliver:
            asyncio.run(service.send("x@example.com", TemplateKind.FORWARD, {"case_key": case.case_key}))

        html = deliver.await_args.args[3]
        assert "&lt;b&gt;Pumps&lt;/b&gt;" in html

    def test_failure_raises_send_error_and_logs(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        failing = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))

        with patch.object(NotificationService, "_deliver_email", new=failing):
            with pytest.raises(SendError) as exc_info:
                asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, {"case_key": case.case_key}))

        assert exc_info.value.channel == "sectionhead@example.com"
        log = db_session.query(NotificationLog).one()
        assert log.status == "failed"
        assert "connection refused" in log.error_message

    def test_unconfigured_smtp_is_a_send_error(self, db_session, case):
        service = NotificationService(db_session, make_settings(smtp_host=None))

        with pytest.raises(SendError):
            asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, {"case_key": case.case_key}))


class TestWebhook:
    def test_channel_detection(self):
        assert is_webhook_channel("https://hooks.example.com/approvals")
        assert is_webhook_channel("http://localhost:9000/hook")
        assert not is_webhook_channel("someone@example.com")

    def test_webhook_payload(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        context = {"case_key": case.case_key, "tier": "director", "rejected_by": "Ito"}

        with patch.object(NotificationService, "_deliver_webhook", new=AsyncMock()) as deliver:
            asyncio.run(service.send("https://hooks.example.com/a", TemplateKind.REJECTION, context))

        url, payload = deliver.await_args.args
        assert url == "https://hooks.example.com/a"
        assert payload["event"] == "rejection"
        assert payload["data"]["case_key"] == case.case_key
        assert payload["data"]["rejected_by"] == "Ito"

        log = db_session.query(NotificationLog).one()
        assert log.channel == "webhook"
        assert log.status == "sent"


class TestDatabaseFailures:
    def test_case_lookup_failure_is_send_error(self, db_session, case):
        service = NotificationService(db_session, make_settings())
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(NotificationService, "_build_context", side_effect=error):
            with pytest.raises(SendError) as exc_info:
                asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, {"case_key": case.case_key}))

        assert exc_info.value.channel == "sectionhead@example.com"
        assert "database is locked" in exc_info.value.message

    def test_log_commit_failure_is_send_error(self, db_session, case):
        db_session.commit()
        service = NotificationService(db_session, make_settings())
        error = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch.object(NotificationService, "_deliver_email", new=AsyncMock()):
            with patch.object(db_session, "commit", side_effect=error):
                with pytest.raises(SendError):
                    asyncio.run(service.send("sectionhead@example.com", TemplateKind.FORWARD, {"case_key": case.case_key}))

        assert db_session.query(NotificationLog).count() == 0
