"""
Pytest configuration and shared fixtures.
"""
import pytest
from unittest.mock import MagicMock

from tests.factories import CheckFactory, ProfileFactory


@pytest.fixture
def probe_queue():
    """A registry-only queue backed by an in-memory job store."""
    from uptime.services.queue import ProbeQueue

    queue = ProbeQueue()
    queue.start(paused=True)
    yield queue
    queue.shutdown(wait=False)


@pytest.fixture
def check_scheduler(probe_queue):
    from uptime.services.scheduler import CheckScheduler

    return CheckScheduler(probe_queue)


@pytest.fixture
def profile():
    """A free-plan owner with email alerts enabled."""
    return ProfileFactory()


@pytest.fixture
def check(profile):
    return CheckFactory(
        owner=profile.user,
        url="https://example.com",
        interval="5min",
        timeout=30,
        expected_status_code=200,
    )


@pytest.fixture
def email_sender():
    from uptime.services.notifiers import SendOutcome

    sender = MagicMock()
    sender.send_alert_email.return_value = SendOutcome(success=True, message_id="<id@test>")
    return sender


@pytest.fixture
def telegram_sender():
    from uptime.services.notifiers import SendOutcome

    sender = MagicMock()
    sender.send_message.return_value = SendOutcome(success=True)
    return sender


@pytest.fixture
def dispatcher(email_sender, telegram_sender):
    from uptime.services.alerts import AlertDispatcher

    return AlertDispatcher(email_sender=email_sender, telegram_sender=telegram_sender)
