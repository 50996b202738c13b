"""
Notification senders for alert emails and Telegram messages.

Both senders are best-effort: they never raise, they report the outcome
of the send so the dispatcher can record it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from email.utils import make_msgid

import httpx
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.core.mail.utils import DNS_NAME
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendOutcome:
    """Outcome of a single notification send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class AlertEmail:
    """Everything an alert email needs to render."""

    user_email: str
    check_name: str
    check_url: str
    timestamp: datetime
    user_name: str = ""
    error_message: str = ""
    status_code: int | None = None
    latency_ms: int | None = None
    region: str = ""

    def context(self) -> dict:
        return {
            "user_name": self.user_name,
            "check_name": self.check_name,
            "check_url": self.check_url,
            "status_text": f"Status Code: {self.status_code}" if self.status_code else "Timeout",
            "latency_text": f"{self.latency_ms}ms" if self.latency_ms else "N/A",
            "error_text": self.error_message or "Service is not responding",
            "region": self.region,
            "timestamp": self.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
            "dashboard_url": getattr(settings, "DASHBOARD_URL", ""),
        }


class EmailSender:
    """Sends alert emails through Django's configured email backend."""

    def __init__(self, from_email: str | None = None, timeout: float | None = None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.timeout = timeout if timeout is not None else getattr(settings, "NOTIFICATION_TIMEOUT", 10)

    def send_alert_email(self, payload: AlertEmail) -> SendOutcome:
        context = payload.context()
        subject = f"🚨 Alert: {payload.check_name} is DOWN"
        message_id = make_msgid(domain=str(DNS_NAME))

        try:
            text_body = render_to_string("uptime/alert_email.txt", context)
            html_body = render_to_string("uptime/alert_email.html", context)

            message = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=self.from_email,
                to=[payload.user_email],
                headers={"Message-ID": message_id},
                connection=get_connection(timeout=self.timeout),
            )
            message.attach_alternative(html_body, "text/html")
            message.send()

        except Exception as e:
            logger.exception(f"Failed to send alert email to {payload.user_email}: {e}")
            return SendOutcome(success=False, error=str(e))

        logger.info(f"Alert email sent to {payload.user_email} ({message_id})")
        return SendOutcome(success=True, message_id=message_id)


class TelegramSender:
    """Sends HTML messages through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
    ):
        self.bot_token = bot_token if bot_token is not None else getattr(settings, "TELEGRAM_BOT_TOKEN", "")
        self.api_url = (api_url or getattr(settings, "TELEGRAM_API_URL", "https://api.telegram.org")).rstrip("/")
        self.timeout = timeout if timeout is not None else getattr(settings, "NOTIFICATION_TIMEOUT", 10)

    def send_message(self, chat_id: str, html: str) -> SendOutcome:
        if not self.bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN not configured, skipping Telegram alert")
            return SendOutcome(success=False, error="Telegram bot token not configured")

        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"
        body = {
            "chat_id": chat_id,
            "text": html,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=body)

            if response.status_code == 200:
                logger.info(f"Telegram alert sent to {chat_id}")
                return SendOutcome(success=True)

            try:
                description = response.json().get("description", "")
            except ValueError:
                description = ""
            error = description or f"Telegram API returned {response.status_code}"
            logger.error(f"Telegram alert failed for {chat_id}: {error}")
            return SendOutcome(success=False, error=error)

        except Exception as e:
            logger.exception(f"Error sending Telegram alert: {e}")
            return SendOutcome(success=False, error=str(e))
