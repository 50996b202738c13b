"""
Alert dispatcher: decides whether and where to notify about a failing check.

A check is either quiet or in cooldown. The first failure observed while
quiet notifies every eligible channel and starts a 30 minute cooldown;
failures during the cooldown are recorded as results only.

The cooldown decision and the Alert rows of the eligible channels are
committed together under the check's row lock. Sends happen afterwards,
outside any transaction, and each channel's outcome is written to its own
row.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import DatabaseError, transaction
from django.template.loader import render_to_string
from django.utils import timezone

from uptime.exceptions import AlertDispatchError
from uptime.models import Alert, Check, CheckResult
from uptime.services.notifiers import AlertEmail, EmailSender, SendOutcome, TelegramSender
from uptime.services.plans import allows_telegram, get_user_profile

logger = logging.getLogger(__name__)

# Global across channels for a check. Plan-level cooldowns are not applied.
ALERT_COOLDOWN = timedelta(minutes=30)

# Stays on a row whose send never reported back (e.g. the worker died).
PENDING_MESSAGE = "Delivery pending"


@dataclass
class _PlannedSend:
    alert: Alert
    payload: AlertEmail
    chat_id: str = ""


class AlertDispatcher:
    """Fans a failure out to the owner's enabled channels."""

    def __init__(
        self,
        email_sender: EmailSender,
        telegram_sender: TelegramSender,
        cooldown: timedelta = ALERT_COOLDOWN,
    ):
        self.email_sender = email_sender
        self.telegram_sender = telegram_sender
        self.cooldown = cooldown

    def handle_failure(self, check_id, check_result_id) -> list[Alert]:
        """
        Notify about a failed check result.

        Returns:
            The Alert rows created, empty when suppressed by the cooldown

        Raises:
            AlertDispatchError: anything went wrong. A channel that raised has
                its own row marked failed; a failure before any row existed
                is recorded as a failed email Alert.
        """
        try:
            planned = self._claim(check_id, check_result_id)
        except Exception as e:
            logger.exception(f"Error handling failure for check {check_id}: {e}")
            self._record_failed_alert(check_id, check_result_id, str(e))
            raise AlertDispatchError(f"Alert dispatch failed for check {check_id}: {e}") from e

        errors = []
        for send in planned:
            try:
                outcome = self._send(send)
            except Exception as e:
                logger.exception(f"Error sending {send.alert.channel} alert for check {check_id}: {e}")
                outcome = SendOutcome(success=False, error=str(e))
                errors.append(f"{send.alert.channel}: {e}")
            self._save_outcome(send.alert, outcome)

        alerts = [send.alert for send in planned]
        if alerts:
            sent = sum(1 for alert in alerts if alert.success)
            logger.info(f"Dispatched {len(alerts)} alert(s) for check {check_id}, {sent} delivered")

        if errors:
            raise AlertDispatchError(
                f"Alert dispatch failed for check {check_id}: {'; '.join(errors)}"
            )
        return alerts

    def _claim(self, check_id, check_result_id) -> list[_PlannedSend]:
        """Run the cooldown test and create the Alert rows to be sent."""
        now = timezone.now()

        # The row lock serializes concurrent workers around the cooldown test.
        with transaction.atomic():
            check = (
                Check.objects.select_for_update(of=("self",))
                .select_related("owner")
                .filter(pk=check_id)
                .first()
            )
            if check is None:
                logger.error(f"Check {check_id} not found, no alert sent")
                return []

            recent = (
                Alert.objects.filter(monitored_check_id=check_id, sent_at__gte=now - self.cooldown)
                .order_by("-sent_at")
                .first()
            )
            if recent is not None:
                logger.info(
                    f"Alert recently sent for check {check_id} "
                    f"({recent.sent_at:%Y-%m-%d %H:%M:%S}), skipping"
                )
                return []

            owner = check.owner
            profile = get_user_profile(check.owner_id)
            result = CheckResult.objects.filter(pk=check_result_id).first()

            payload = AlertEmail(
                user_email=owner.email,
                user_name=owner.get_full_name() or owner.get_username(),
                check_name=check.display_name,
                check_url=check.url,
                timestamp=now,
                error_message=result.error_message if result else "",
                status_code=result.status_code if result else None,
                latency_ms=result.latency_ms if result else None,
                region=result.region if result else "",
            )
            logger.warning(
                f"Alert triggered for check {check_id} ({check.display_name}): "
                f"status {payload.status_code or 'unknown'}"
            )

            channels = []
            if profile.email_alerts_enabled:
                channels.append((Alert.CHANNEL_EMAIL, ""))

            if profile.telegram_alerts_enabled:
                if not profile.telegram_chat_id:
                    logger.info(f"Telegram enabled for check {check_id} but no chat id configured")
                elif not allows_telegram(profile.plan_type):
                    logger.info(
                        f"Telegram alerts not available on plan {profile.plan_type}, "
                        f"skipping for check {check_id}"
                    )
                else:
                    channels.append((Alert.CHANNEL_TELEGRAM, profile.telegram_chat_id))

            return [
                _PlannedSend(
                    alert=Alert.objects.create(
                        monitored_check_id=check_id,
                        check_result_id=check_result_id,
                        channel=channel,
                        success=False,
                        error_message=PENDING_MESSAGE,
                        sent_at=now,
                    ),
                    payload=payload,
                    chat_id=chat_id,
                )
                for channel, chat_id in channels
            ]

    def _send(self, send: _PlannedSend) -> SendOutcome:
        if send.alert.channel == Alert.CHANNEL_TELEGRAM:
            html = render_to_string("uptime/alert_telegram.html", send.payload.context())
            return self.telegram_sender.send_message(send.chat_id, html)
        return self.email_sender.send_alert_email(send.payload)

    def _save_outcome(self, alert: Alert, outcome: SendOutcome) -> None:
        alert.success = outcome.success
        alert.error_message = outcome.error or ""
        try:
            alert.save(update_fields=["success", "error_message"])
        except DatabaseError:
            logger.exception(f"Could not save {alert.channel} alert outcome {alert.pk}")

    def _record_failed_alert(self, check_id, check_result_id, reason: str) -> None:
        try:
            Alert.objects.create(
                monitored_check_id=check_id,
                check_result_id=check_result_id,
                channel=Alert.CHANNEL_EMAIL,
                success=False,
                error_message=reason,
            )
        except DatabaseError:
            logger.exception(f"Could not save failed alert for check {check_id}")
