"""
Procurement Workflow Hub - Notification Service

Template-driven outbound messaging for workflow events. Templates are
rendered into an EmailMessage and handed to the configured email provider.

Current provider: Mock, which logs each message and stores it in MongoDB
(`email_logs`) so sent notifications can be inspected. Delivery failures are
reported as `False`; the workflow never rolls back a transition because a
notification failed.
"""

import logging
import os
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from string import Template
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class EmailProvider(str, Enum):
    """Supported email providers."""
    MOCK = "mock"


class TemplateKey(str, Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    CANCELLATION_WARNING = "CANCELLATION_WARNING"
    DELIVERY_REMINDER = "DELIVERY_REMINDER"


@dataclass
class EmailMessage:
    """Email message structure."""
    to: List[str]
    subject: str
    html_body: str
    text_body: Optional[str] = None
    from_address: str = "noreply@procurement.local"
    template_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EmailResult:
    """Result of an email send operation."""
    success: bool
    message_id: Optional[str] = None
    provider: str = "mock"
    error: Optional[str] = None
    timestamp: str = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_FROM_ADDRESS = os.environ.get(
    "EMAIL_FROM_ADDRESS",
    "Procurement Workflow Hub <noreply@procurement.local>"
)


# =============================================================================
# TEMPLATES
# =============================================================================

# Format: {template_key: (subject, body)} using $field placeholders
TEMPLATES: Dict[str, tuple] = {
    TemplateKey.STATUS_CHANGE.value: (
        "[$doc_number] Status changed to $new_status",
        "<p>$kind <b>$doc_number</b> moved from <b>$old_status</b> to <b>$new_status</b>.</p>"
        "<p>Vendor: $vendor<br>Amount: $amount $currency<br>Changed by: $actor at $timestamp</p>"
        "<p>Notes: $notes</p>",
    ),
    TemplateKey.CANCELLATION_WARNING.value: (
        "[$doc_number] Will be auto-canceled in $days_remaining business days",
        "<p>$kind <b>$doc_number</b> ($vendor) is <b>$days_overdue business days</b> past its "
        "expected landing date of $expected_landing_date.</p>"
        "<p>It will be canceled automatically at $auto_cancel_days business days overdue "
        "unless delivery is recorded.</p>",
    ),
    TemplateKey.DELIVERY_REMINDER.value: (
        "[$doc_number] Reminder #$reminder_number: $blocking_item pending",
        "<p>$kind <b>$doc_number</b> ($vendor) is still waiting on <b>$blocking_item</b>.</p>"
        "<p>Expected landing date: $expected_landing_date</p>",
    ),
}


def render_template(template_key: str, fields: Dict[str, str]) -> tuple:
    """Render (subject, html_body). Unknown placeholders are left as-is."""
    if template_key not in TEMPLATES:
        raise KeyError(f"Unknown notification template: {template_key}")
    subject, body = TEMPLATES[template_key]
    values = {k: ("" if v is None else str(v)) for k, v in fields.items()}
    return Template(subject).safe_substitute(values), Template(body).safe_substitute(values)


def clean_recipients(recipients: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and duplicates (case-insensitive), keeping first-seen order."""
    seen = set()
    cleaned = []
    for address in recipients:
        if not address or not address.strip():
            continue
        key = address.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(address.strip())
    return cleaned


# =============================================================================
# MOCK EMAIL PROVIDER
# =============================================================================

class MockEmailProvider:
    """
    Mock email provider for development and testing.

    Stores emails in MongoDB collection 'email_logs' for verification.
    Also logs to console for immediate visibility.
    """

    def __init__(self, db=None):
        self.db = db
        self._sent_emails = []  # In-memory backup if no DB

    async def send(self, message: EmailMessage) -> EmailResult:
        message_id = f"mock_{uuid.uuid4().hex[:12]}"
        timestamp = datetime.now(timezone.utc).isoformat()

        email_record = {
            "message_id": message_id,
            "provider": "mock",
            "to": message.to,
            "subject": message.subject,
            "from_address": message.from_address,
            "html_body": message.html_body,
            "template_key": message.template_key,
            "sent_at": timestamp,
            "status": "sent",
        }

        logger.info(
            "[MOCK EMAIL] To: %s | Subject: %s | ID: %s",
            ", ".join(message.to), message.subject, message_id
        )

        self._sent_emails.append(email_record)

        if self.db is not None:
            try:
                await self.db.email_logs.insert_one(dict(email_record))
            except Exception as e:
                logger.warning(f"Failed to log email to MongoDB: {e}")

        return EmailResult(success=True, message_id=message_id, provider="mock", timestamp=timestamp)

    def get_sent_emails(self) -> List[Dict[str, Any]]:
        return self._sent_emails.copy()

    def clear_sent_emails(self):
        self._sent_emails.clear()


def _provider_from_env() -> EmailProvider:
    name = os.environ.get("EMAIL_PROVIDER", "mock").strip().lower()
    try:
        return EmailProvider(name)
    except ValueError:
        supported = ", ".join(p.value for p in EmailProvider)
        raise ValueError(f"Unsupported EMAIL_PROVIDER '{name}' (supported: {supported})")


# =============================================================================
# NOTIFICATION SERVICE (Main Interface)
# =============================================================================

class NotificationService:
    """
    Usage:
        service = NotificationService(db=database)
        delivered = await service.send(
            "STATUS_CHANGE",
            {"doc_number": "PR-1001", "old_status": "Submitted", ...},
            ["procurement@example.com", "requester@example.com"]
        )
    """

    def __init__(self, db=None, provider: EmailProvider = None, from_address: str = None):
        self.db = db
        self.provider_type = provider or _provider_from_env()
        self.from_address = from_address or DEFAULT_FROM_ADDRESS
        self._provider = None

    def _get_provider(self):
        if self._provider is None:
            self._provider = MockEmailProvider(db=self.db)
        return self._provider

    async def send(self, template_key: str, fields: Dict[str, str], recipients: List[str]) -> bool:
        """
        Render a template and send it.

        Returns True when the provider accepted the message. Failures are
        logged and reported as False, never raised.
        """
        to = clean_recipients(recipients)
        if not to:
            logger.warning("Notification %s skipped: no recipients", template_key)
            return False

        try:
            subject, html_body = render_template(template_key, fields)
            message = EmailMessage(
                to=to,
                subject=subject,
                html_body=html_body,
                from_address=self.from_address,
                template_key=template_key,
            )
            result = await self._get_provider().send(message)
        except Exception as e:
            logger.warning("Notification %s to %s failed: %s", template_key, to, e)
            return False

        if not result.success:
            logger.warning("Notification %s to %s rejected: %s", template_key, to, result.error)
        return result.success

    def get_sent_emails(self) -> List[Dict[str, Any]]:
        provider = self._get_provider()
        if isinstance(provider, MockEmailProvider):
            return provider.get_sent_emails()
        return []
