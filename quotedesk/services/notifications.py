"""Notification service for approval e-mail and webhook delivery.

Handles:
- Approval request e-mails to the next approver (and reminders)
- Rejection notices
- JSON webhooks for channels given as http(s) URLs
- Development redirection of outgoing mail
- A delivery log row per attempt
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

import aiosmtplib
import httpx
from jinja2 import Environment, select_autoescape
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quotedesk.core.approval.errors import SendError
from quotedesk.core.approval.records import utcnow
from quotedesk.core.approval.states import TemplateKind, Tier, next_tier
from quotedesk.core.config import Settings, get_settings
from quotedesk.db.models import Case, NotificationChannel, NotificationLog

logger = logging.getLogger(__name__)


EMAIL_TEMPLATES = {
    TemplateKind.FORWARD: {
        "subject": "[Approval request] {subject}",
        "body": """
{approved_by} has approved this case.

Next approver: {next_approver}

Case: {case_key}
Subject: {subject}

Please review at: {approval_url}

---
{app_name}
        """,
    },
    TemplateKind.REJECTION: {
        "subject": "[Returned] {subject}",
        "body": """
The approval request for this case has been returned by {rejected_by}.

Case: {case_key}
Subject: {subject}

Please review at: {approval_url}

---
{app_name}
        """,
    },
}

RESEND_SUBJECT_PREFIX = "[Reminder]"

HTML_TEMPLATE = """
<div style="font-family: Arial, sans-serif; padding: 20px;">
  {% if redirected_from %}
  <div style="background-color: #fff3cd; padding: 12px; border: 2px solid #ffc107; margin-bottom: 20px;">
    <strong>Development environment</strong><br>
    Intended recipient: <strong>{{ redirected_from }}</strong>
  </div>
  {% endif %}
  <h2>Case notification</h2>
  <p>Case: {{ case_key }}<br>Subject: {{ subject }}</p>
  <pre style="white-space: pre-wrap;">{{ text }}</pre>
  <a href="{{ approval_url }}">Open approval page</a>
</div>
"""

_jinja = Environment(autoescape=select_autoescape(default=True))


def _addressee(template_kind: TemplateKind, context: Dict[str, Any]) -> str:
    """Display name of the tier a message is addressed to."""
    if template_kind == TemplateKind.REJECTION or not context.get("tier"):
        return "applicant"
    tier = Tier(context["tier"])
    target = tier if context.get("resend") else next_tier(tier)
    return (target or tier).value.replace("_", " ")


def is_webhook_channel(channel: str) -> bool:
    return channel.startswith(("http://", "https://"))


class NotificationService:
    """
    Notification port backed by SMTP and HTTP webhooks.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        """
        Initialize notification service.

        Args:
            db: Database session used for case lookups and delivery logs
            settings: Application settings (cached settings when omitted)
        """
        self.db = db
        self.settings = settings or get_settings()

    async def send(self, channel: str, template_kind: TemplateKind, context: Dict[str, Any]) -> None:
        """
        Deliver one approval or rejection message.

        Args:
            channel: E-mail address or webhook URL
            template_kind: Forward request or rejection notice
            context: Values from the state machine (case_key, tier, actor, ...)

        Raises:
            SendError: If delivery fails
        """
        try:
            context = self._build_context(template_kind, context)
            if is_webhook_channel(channel):
                await self._send_webhook(channel, template_kind, context)
            else:
                await self._send_email(channel, template_kind, context)
        except SQLAlchemyError as e:
            # The transition is already committed; only the log row is lost
            self.db.rollback()
            logger.exception(f"Database error while notifying {channel}")
            raise SendError(channel, f"notification log unavailable: {e}") from e

    async def _send_email(self, to_email: str, template_kind: TemplateKind, context: Dict[str, Any]) -> None:
        template = EMAIL_TEMPLATES[template_kind]
        subject = template["subject"].format(**context)
        text = template["body"].format(**context).strip()
        if context.get("resend"):
            subject = f"{RESEND_SUBJECT_PREFIX}{subject}"

        recipient = to_email
        redirected_from = None
        if not self.settings.is_production and self.settings.dev_email_to:
            recipient = self.settings.dev_email_to
            if recipient != to_email:
                redirected_from = to_email
                subject = f"[DEV - intended for {to_email}] {subject}"
                logger.info(f"Development mode: redirecting mail for {to_email} to {recipient}")

        html = _jinja.from_string(HTML_TEMPLATE).render(
            text=text, redirected_from=redirected_from, **context
        )

        log = NotificationLog(
            case_key=context.get("case_key"),
            channel=NotificationChannel.EMAIL.value,
            template_kind=template_kind.value,
            recipient=recipient,
            subject=subject,
            body=text,
            status="pending",
        )
        self.db.add(log)
        self.db.flush()

        try:
            await self._deliver_email(recipient, subject, text, html)
        except Exception as e:
            logger.exception(f"Failed to send email to {recipient}")
            self._finish(log, error=str(e))
            raise SendError(to_email, str(e)) from e

        self._finish(log)

    async def _deliver_email(self, to_email: str, subject: str, text: str, html: str) -> None:
        """Actually deliver the email via SMTP."""
        if not self.settings.smtp_host:
            raise RuntimeError("SMTP is not configured")

        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        await aiosmtplib.send(
            msg,
            hostname=self.settings.smtp_host,
            port=self.settings.smtp_port,
            username=self.settings.smtp_user,
            password=self.settings.smtp_password,
            start_tls=self.settings.smtp_use_tls,
            timeout=self.settings.smtp_timeout,
        )

    async def _send_webhook(self, url: str, template_kind: TemplateKind, context: Dict[str, Any]) -> None:
        payload = {
            "event": template_kind.value,
            "timestamp": utcnow().isoformat(),
            "data": context,
        }

        log = NotificationLog(
            case_key=context.get("case_key"),
            channel=NotificationChannel.WEBHOOK.value,
            template_kind=template_kind.value,
            recipient=url,
            payload=payload,
            status="pending",
        )
        self.db.add(log)
        self.db.flush()

        try:
            await self._deliver_webhook(url, payload)
        except Exception as e:
            logger.exception(f"Failed to send webhook to {url}")
            self._finish(log, error=str(e))
            raise SendError(url, str(e)) from e

        self._finish(log)

    async def _deliver_webhook(self, url: str, payload: Dict[str, Any]) -> None:
        """Actually deliver the webhook."""
        async with httpx.AsyncClient(timeout=self.settings.webhook_timeout) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()

    def _finish(self, log: NotificationLog, error: Optional[str] = None) -> None:
        log.attempts = (log.attempts or 0) + 1
        if error is None:
            log.status = "sent"
            log.sent_at = utcnow()
        else:
            log.status = "failed"
            log.error_message = error
        self.db.commit()

    def _build_context(self, template_kind: TemplateKind, context: Dict[str, Any]) -> Dict[str, Any]:
        """Add case details and display defaults to a state machine context."""
        case_key = context.get("case_key", "")
        case = self.db.query(Case).filter(Case.case_key == case_key).first() if case_key else None

        built = {
            "app_name": self.settings.app_name,
            "subject": (case.subject if case and case.subject else "(no subject)"),
            "approval_url": self.settings.approval_url(case_key),
            "next_approver": _addressee(template_kind, context),
        }
        built.update({k: v for k, v in context.items() if v is not None})
        built.setdefault("approved_by", "staff member")
        built.setdefault("rejected_by", "approver")
        built["case_key"] = case_key
        return built
