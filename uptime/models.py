"""
Models for the uptime monitoring pipeline.
"""
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Profile(models.Model):
    """
    Plan limits and alert preferences of a user.
    """

    PLAN_CHOICES = [
        ("free", "Free"),
        ("starter", "Starter"),
        ("pro", "Pro"),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    plan_type = models.CharField(max_length=20, choices=PLAN_CHOICES, default="free")
    max_checks = models.PositiveIntegerField(default=10)
    min_interval_minutes = models.PositiveIntegerField(default=30)
    max_regions = models.PositiveSmallIntegerField(default=1)
    data_retention_days = models.PositiveIntegerField(default=7)
    email_alerts_enabled = models.BooleanField(default=True)
    telegram_alerts_enabled = models.BooleanField(default=False)
    telegram_chat_id = models.CharField(max_length=64, blank=True, default="")

    def __str__(self):
        return f"{self.user} ({self.plan_type})"


class Check(models.Model):
    """
    A monitored endpoint, probed on a fixed interval.
    """

    INTERVAL_CHOICES = [
        ("1min", "Every minute"),
        ("5min", "Every 5 minutes"),
        ("15min", "Every 15 minutes"),
        ("30min", "Every 30 minutes"),
        ("1hour", "Every hour"),
        ("1day", "Every day"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_PAUSED = "paused"
    STATUS_DELETED = "deleted"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_PAUSED, "Paused"),
        (STATUS_DELETED, "Deleted"),
    ]

    LAST_STATUS_CHOICES = [
        ("up", "Up"),
        ("down", "Down"),
        ("timeout", "Timeout"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="checks",
    )
    url = models.URLField(max_length=2048)
    name = models.CharField(max_length=200, blank=True, default="")
    interval = models.CharField(max_length=10, choices=INTERVAL_CHOICES, default="5min")
    regions = models.JSONField(default=list, blank=True)
    timeout = models.PositiveIntegerField(default=30)
    expected_status_code = models.PositiveSmallIntegerField(default=200)
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True
    )
    last_check_at = models.DateTimeField(null=True, blank=True)
    last_status = models.CharField(
        max_length=10, choices=LAST_STATUS_CHOICES, blank=True, default=""
    )
    failure_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner", "status"], name="uptime_check_owner_status"),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self) -> str:
        return self.name or self.url

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE


class CheckResult(models.Model):
    """
    The outcome of a single probe. Immutable once written.
    """

    monitored_check = models.ForeignKey(
        Check, on_delete=models.CASCADE, related_name="results", db_column="check_id"
    )
    region = models.CharField(max_length=50)
    # 0 when no response was received
    status_code = models.PositiveSmallIntegerField(default=0)
    latency_ms = models.PositiveIntegerField()
    success = models.BooleanField()
    error_message = models.TextField(blank=True, default="")
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-timestamp"]
        get_latest_by = "timestamp"
        indexes = [
            models.Index(fields=["monitored_check", "-timestamp"], name="uptime_result_check_ts"),
        ]

    def __str__(self):
        state = "OK" if self.success else "FAIL"
        return f"{self.monitored_check_id} - {state} {self.status_code} @ {self.timestamp:%Y-%m-%d %H:%M:%S}"


class Alert(models.Model):
    """
    One notification attempt on one channel. Append-only audit trail.
    """

    CHANNEL_EMAIL = "email"
    CHANNEL_TELEGRAM = "telegram"
    CHANNEL_CHOICES = [
        (CHANNEL_EMAIL, "Email"),
        (CHANNEL_TELEGRAM, "Telegram"),
    ]

    monitored_check = models.ForeignKey(
        Check, on_delete=models.CASCADE, related_name="alerts", db_column="check_id"
    )
    check_result = models.ForeignKey(
        CheckResult,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="alerts",
    )
    channel = models.CharField(max_length=20, choices=CHANNEL_CHOICES)
    success = models.BooleanField()
    error_message = models.TextField(blank=True, default="")
    sent_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-sent_at"]
        get_latest_by = "sent_at"
        indexes = [
            models.Index(fields=["monitored_check", "-sent_at"], name="uptime_alert_check_sent"),
        ]

    def __str__(self):
        state = "sent" if self.success else "failed"
        return f"{self.channel} alert {state} for {self.monitored_check_id} @ {self.sent_at:%Y-%m-%d %H:%M:%S}"
