"""
Tests for the alert dispatcher.
"""
import pytest
from datetime import timedelta
from django.utils import timezone

from tests.factories import CheckFactory, CheckResultFactory, ProfileFactory


pytestmark = pytest.mark.django_db


def _failed_result(check):
    return CheckResultFactory(
        monitored_check=check,
        success=False,
        status_code=503,
        latency_ms=80,
        error_message="Expected 200, got 503",
    )


class TestAlertDispatcher:
    """Tests for AlertDispatcher.handle_failure."""

    def test_sends_email_on_first_failure(self, check, dispatcher, email_sender):
        """The first failure emails the owner and records a successful Alert."""
        from uptime.models import Alert

        result = _failed_result(check)

        alerts = dispatcher.handle_failure(check.pk, result.pk)

        assert len(alerts) == 1
        alert = Alert.objects.get()
        assert alert.channel == Alert.CHANNEL_EMAIL
        assert alert.success is True
        assert alert.check_result_id == result.pk

        payload = email_sender.send_alert_email.call_args.args[0]
        assert payload.user_email == check.owner.email
        assert payload.check_url == "https://example.com"
        assert payload.status_code == 503
        assert payload.error_message == "Expected 200, got 503"

    def test_cooldown_suppresses_repeat_alerts(self, check, dispatcher, email_sender):
        """A second failure within 30 minutes creates no new alerts."""
        from uptime.models import Alert

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)
        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert alerts == []
        assert Alert.objects.count() == 1
        assert email_sender.send_alert_email.call_count == 1

    def test_alerts_again_after_cooldown(self, check, dispatcher, email_sender):
        """Once the last alert is older than the cooldown, a failure alerts again."""
        from uptime.models import Alert

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)
        Alert.objects.update(sent_at=timezone.now() - timedelta(minutes=31))

        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert len(alerts) == 1
        assert Alert.objects.count() == 2
        assert email_sender.send_alert_email.call_count == 2

    def test_failed_alert_also_starts_cooldown(self, check, dispatcher, email_sender):
        """A failed send is recorded and still counts for the cooldown."""
        from uptime.models import Alert
        from uptime.services.notifiers import SendOutcome

        email_sender.send_alert_email.return_value = SendOutcome(success=False, error="SMTP down")

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)
        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert alerts == []
        alert = Alert.objects.get()
        assert alert.success is False
        assert alert.error_message == "SMTP down"

    def test_email_disabled(self, dispatcher, email_sender):
        """No email goes out when the owner disabled email alerts."""
        from uptime.models import Alert

        profile = ProfileFactory(email_alerts_enabled=False)
        check = CheckFactory(owner=profile.user)

        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert alerts == []
        assert Alert.objects.count() == 0
        email_sender.send_alert_email.assert_not_called()

    def test_telegram_on_paid_plan(self, dispatcher, telegram_sender):
        """Starter plans with a chat id get a Telegram alert as well."""
        from uptime.models import Alert

        profile = ProfileFactory(
            starter=True,
            telegram_alerts_enabled=True,
            telegram_chat_id="123456",
        )
        check = CheckFactory(owner=profile.user, name="Billing API")

        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert {alert.channel for alert in alerts} == {Alert.CHANNEL_EMAIL, Alert.CHANNEL_TELEGRAM}
        chat_id, html = telegram_sender.send_message.call_args.args
        assert chat_id == "123456"
        assert "<b>Service Down: Billing API</b>" in html

    def test_telegram_not_on_free_plan(self, dispatcher, telegram_sender):
        """Free plans never get Telegram alerts, even when enabled."""
        from uptime.models import Alert

        profile = ProfileFactory(telegram_alerts_enabled=True, telegram_chat_id="123456")
        check = CheckFactory(owner=profile.user)

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        telegram_sender.send_message.assert_not_called()
        assert not Alert.objects.filter(channel=Alert.CHANNEL_TELEGRAM).exists()

    def test_telegram_requires_chat_id(self, dispatcher, telegram_sender):
        """Telegram is skipped without a chat id."""
        profile = ProfileFactory(starter=True, telegram_alerts_enabled=True, telegram_chat_id="")
        check = CheckFactory(owner=profile.user)

        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert len(alerts) == 1
        telegram_sender.send_message.assert_not_called()

    def test_missing_check_returns_nothing(self, dispatcher, email_sender):
        """A check deleted before alerting produces no alerts."""
        import uuid

        assert dispatcher.handle_failure(uuid.uuid4(), None) == []
        email_sender.send_alert_email.assert_not_called()

    def test_unexpected_error_records_failed_alert(self, check, dispatcher, email_sender):
        """Unexpected errors are recorded as a failed email alert and re-raised."""
        from uptime.exceptions import AlertDispatchError
        from uptime.models import Alert

        email_sender.send_alert_email.side_effect = RuntimeError("template exploded")
        result = _failed_result(check)

        with pytest.raises(AlertDispatchError):
            dispatcher.handle_failure(check.pk, result.pk)

        alert = Alert.objects.get()
        assert alert.channel == Alert.CHANNEL_EMAIL
        assert alert.success is False
        assert "template exploded" in alert.error_message

    def test_sends_real_email_through_backend(self, check):
        """End to end with the real email sender and the locmem backend."""
        from django.core import mail
        from unittest.mock import MagicMock
        from uptime.services.alerts import AlertDispatcher
        from uptime.services.notifiers import EmailSender

        dispatcher = AlertDispatcher(email_sender=EmailSender(), telegram_sender=MagicMock())

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [check.owner.email]
        assert message.subject == "🚨 Alert: https://example.com is DOWN"
        assert "Status Code: 503" in message.body

    def test_channel_error_keeps_other_channel_outcome(self, dispatcher, email_sender, telegram_sender):
        """A Telegram exception leaves the delivered email recorded as delivered."""
        from uptime.exceptions import AlertDispatchError
        from uptime.models import Alert

        profile = ProfileFactory(starter=True, telegram_alerts_enabled=True, telegram_chat_id="123456")
        check = CheckFactory(owner=profile.user)
        telegram_sender.send_message.side_effect = RuntimeError("boom")

        with pytest.raises(AlertDispatchError):
            dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        email_sender.send_alert_email.assert_called_once()
        rows = set(Alert.objects.values_list("channel", "success", "error_message"))
        assert rows == {
            (Alert.CHANNEL_EMAIL, True, ""),
            (Alert.CHANNEL_TELEGRAM, False, "boom"),
        }

    def test_channel_error_still_starts_cooldown(self, check, dispatcher, email_sender):
        """A send that raised still counts for the cooldown."""
        from uptime.exceptions import AlertDispatchError

        email_sender.send_alert_email.side_effect = RuntimeError("boom")
        with pytest.raises(AlertDispatchError):
            dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        email_sender.send_alert_email.side_effect = None
        assert dispatcher.handle_failure(check.pk, _failed_result(check).pk) == []

    def test_sends_outside_transaction(self, check, dispatcher, email_sender):
        """Senders run after the cooldown transaction has closed."""
        from django.db import connection
        from uptime.services.notifiers import SendOutcome

        baseline = len(connection.savepoint_ids)
        depths = []

        def send(payload):
            depths.append(len(connection.savepoint_ids))
            return SendOutcome(success=True)

        email_sender.send_alert_email.side_effect = send

        dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert depths == [baseline]

    def test_no_pending_rows_left(self, check, dispatcher):
        """Every created row carries the final send outcome."""
        from uptime.models import Alert
        from uptime.services.alerts import PENDING_MESSAGE

        alerts = dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        assert alerts[0].success is True
        assert not Alert.objects.filter(error_message=PENDING_MESSAGE).exists()

    def test_error_before_sending_records_failed_email(self, dispatcher, email_sender):
        """Failures before any send are recorded as a failed email alert."""
        from uptime.exceptions import AlertDispatchError
        from uptime.models import Alert

        check = CheckFactory()  # owner without a profile

        with pytest.raises(AlertDispatchError):
            dispatcher.handle_failure(check.pk, _failed_result(check).pk)

        email_sender.send_alert_email.assert_not_called()
        alert = Alert.objects.get()
        assert alert.channel == Alert.CHANNEL_EMAIL
        assert alert.success is False
        assert "No profile" in alert.error_message
