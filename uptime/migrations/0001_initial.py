import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Check",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("url", models.URLField(max_length=2048)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                (
                    "interval",
                    models.CharField(
                        choices=[
                            ("1min", "Every minute"),
                            ("5min", "Every 5 minutes"),
                            ("15min", "Every 15 minutes"),
                            ("30min", "Every 30 minutes"),
                            ("1hour", "Every hour"),
                            ("1day", "Every day"),
                        ],
                        default="5min",
                        max_length=10,
                    ),
                ),
                ("regions", models.JSONField(blank=True, default=list)),
                ("timeout", models.PositiveIntegerField(default=30)),
                ("expected_status_code", models.PositiveSmallIntegerField(default=200)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("paused", "Paused"), ("deleted", "Deleted")],
                        db_index=True,
                        default="active",
                        max_length=10,
                    ),
                ),
                ("last_check_at", models.DateTimeField(blank=True, null=True)),
                (
                    "last_status",
                    models.CharField(
                        blank=True,
                        choices=[("up", "Up"), ("down", "Down"), ("timeout", "Timeout")],
                        default="",
                        max_length=10,
                    ),
                ),
                ("failure_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="checks",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["owner", "status"], name="uptime_check_owner_status")],
            },
        ),
        migrations.CreateModel(
            name="CheckResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("region", models.CharField(max_length=50)),
                ("status_code", models.PositiveSmallIntegerField(default=0)),
                ("latency_ms", models.PositiveIntegerField()),
                ("success", models.BooleanField()),
                ("error_message", models.TextField(blank=True, default="")),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "monitored_check",
                    models.ForeignKey(
                        db_column="check_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="results",
                        to="uptime.check",
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp"],
                "get_latest_by": "timestamp",
                "indexes": [
                    models.Index(fields=["monitored_check", "-timestamp"], name="uptime_result_check_ts")
                ],
            },
        ),
        migrations.CreateModel(
            name="Alert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "channel",
                    models.CharField(choices=[("email", "Email"), ("telegram", "Telegram")], max_length=20),
                ),
                ("success", models.BooleanField()),
                ("error_message", models.TextField(blank=True, default="")),
                ("sent_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "monitored_check",
                    models.ForeignKey(
                        db_column="check_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="alerts",
                        to="uptime.check",
                    ),
                ),
                (
                    "check_result",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="alerts",
                        to="uptime.checkresult",
                    ),
                ),
            ],
            options={
                "ordering": ["-sent_at"],
                "get_latest_by": "sent_at",
                "indexes": [
                    models.Index(fields=["monitored_check", "-sent_at"], name="uptime_alert_check_sent")
                ],
            },
        ),
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "plan_type",
                    models.CharField(
                        choices=[("free", "Free"), ("starter", "Starter"), ("pro", "Pro")],
                        default="free",
                        max_length=20,
                    ),
                ),
                ("max_checks", models.PositiveIntegerField(default=10)),
                ("min_interval_minutes", models.PositiveIntegerField(default=30)),
                ("max_regions", models.PositiveSmallIntegerField(default=1)),
                ("data_retention_days", models.PositiveIntegerField(default=7)),
                ("email_alerts_enabled", models.BooleanField(default=True)),
                ("telegram_alerts_enabled", models.BooleanField(default=False)),
                ("telegram_chat_id", models.CharField(blank=True, default="", max_length=64)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
    ]
