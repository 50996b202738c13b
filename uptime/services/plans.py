"""
Plan policy: limits that gate check creation and alert channels.
"""
from dataclasses import dataclass, field

from uptime.exceptions import PlanLimitError, ProfileNotFound
from uptime.models import Check, Profile


@dataclass(frozen=True)
class PlanConfig:
    name: str
    price: int  # USD per month
    max_checks: int
    min_interval_minutes: int
    max_regions: int
    data_retention_days: int
    telegram_alerts: bool
    # Not consulted when dispatching alerts; the alert cooldown is fixed.
    alert_cooldown_min: int = 30
    features: list[str] = field(default_factory=list)


PLANS: dict[str, PlanConfig] = {
    "free": PlanConfig(
        name="Free",
        price=0,
        max_checks=10,
        min_interval_minutes=30,
        max_regions=1,
        data_retention_days=7,
        telegram_alerts=False,
        alert_cooldown_min=30,
        features=["10 checks", "30 min interval", "Email alerts", "7 days retention"],
    ),
    "starter": PlanConfig(
        name="Starter",
        price=5,
        max_checks=50,
        min_interval_minutes=1,
        max_regions=3,
        data_retention_days=30,
        telegram_alerts=True,
        alert_cooldown_min=15,
        features=["50 checks", "1 min interval", "Email alerts", "Telegram alerts", "30 days retention"],
    ),
    "pro": PlanConfig(
        name="Pro",
        price=15,
        max_checks=200,
        min_interval_minutes=1,
        max_regions=10,
        data_retention_days=90,
        telegram_alerts=True,
        alert_cooldown_min=0,
        features=["200 checks", "1 min interval", "Email alerts", "Telegram alerts", "90 days retention"],
    ),
}

INTERVAL_MINUTES = {
    "1min": 1,
    "5min": 5,
    "15min": 15,
    "30min": 30,
    "1hour": 60,
    "1h": 60,
    "1day": 1440,
    "1d": 1440,
}


def get_plan_config(plan_type: str) -> PlanConfig:
    """Return the plan config, treating unknown plans as free."""
    return PLANS.get(plan_type, PLANS["free"])


def get_user_profile(user_id) -> Profile:
    """
    Look up the plan profile of a user.

    Raises:
        ProfileNotFound: the user has no profile
    """
    try:
        return Profile.objects.select_related("user").get(user_id=user_id)
    except Profile.DoesNotExist:
        raise ProfileNotFound(f"No profile for user {user_id}") from None


def allows_telegram(plan_type: str) -> bool:
    return get_plan_config(plan_type).telegram_alerts


def interval_minutes(interval: str) -> int:
    """Minutes between probes for an interval; unknown values count as hourly."""
    return INTERVAL_MINUTES.get(interval.lower(), 60)


def ensure_can_create_check(profile: Profile) -> None:
    active = Check.objects.filter(
        owner_id=profile.user_id, status=Check.STATUS_ACTIVE
    ).count()
    if active >= profile.max_checks:
        raise PlanLimitError(
            f"Plan {profile.plan_type} allows {profile.max_checks} active checks"
        )


def ensure_interval_allowed(profile: Profile, interval: str) -> None:
    if interval_minutes(interval) < profile.min_interval_minutes:
        raise PlanLimitError(
            f"Plan {profile.plan_type} requires an interval of at least "
            f"{profile.min_interval_minutes} minutes"
        )


def ensure_regions_allowed(profile: Profile, regions: list[str]) -> None:
    if len(regions) > profile.max_regions:
        raise PlanLimitError(
            f"Plan {profile.plan_type} allows {profile.max_regions} region(s)"
        )
