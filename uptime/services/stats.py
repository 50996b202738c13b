"""
Windowed aggregates over check results and alerts.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import Avg, Count, Max, Q
from django.utils import timezone

from uptime.models import Alert, Check

DEFAULT_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class CheckMetrics:
    total_checks: int
    successful_checks: int
    failed_checks: int
    uptime_percentage: float
    average_latency_ms: int


@dataclass(frozen=True)
class AlertStats:
    total_alerts: int
    successful_alerts: int
    failed_alerts: int
    success_rate: float
    last_alert_sent_at: datetime | None


def check_metrics(check: Check, window: timedelta = DEFAULT_WINDOW, region: str | None = None) -> CheckMetrics:
    """
    Uptime and latency of a check over the trailing window.

    A check without results in the window reports 0% uptime.
    """
    results = check.results.filter(timestamp__gte=timezone.now() - window)
    if region:
        results = results.filter(region=region)

    totals = results.aggregate(
        total=Count("id"),
        successful=Count("id", filter=Q(success=True)),
        avg_latency=Avg("latency_ms"),
    )
    total = totals["total"]
    successful = totals["successful"]

    return CheckMetrics(
        total_checks=total,
        successful_checks=successful,
        failed_checks=total - successful,
        uptime_percentage=round(successful / total * 100, 2) if total else 0.0,
        average_latency_ms=round(totals["avg_latency"] or 0),
    )


def alert_history(check: Check, limit: int = 20) -> list[Alert]:
    """Most recent alerts of a check, newest first."""
    return list(
        check.alerts.select_related("check_result").order_by("-sent_at")[:limit]
    )


def alert_stats(check: Check) -> AlertStats:
    totals = check.alerts.aggregate(
        total=Count("id"),
        successful=Count("id", filter=Q(success=True)),
        last_sent=Max("sent_at"),
    )
    total = totals["total"]
    successful = totals["successful"]

    return AlertStats(
        total_alerts=total,
        successful_alerts=successful,
        failed_alerts=total - successful,
        success_rate=successful / total * 100 if total else 0.0,
        last_alert_sent_at=totals["last_sent"],
    )
