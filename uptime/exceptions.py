"""
Exceptions raised by the uptime pipeline.
"""


class UptimeError(Exception):
    """Base class for errors raised by the uptime app."""


class InvalidJobPayload(UptimeError, ValueError):
    """A probe job payload failed validation before being enqueued."""


class RegistryError(UptimeError):
    """The job registry could not be changed."""


class CheckGone(UptimeError):
    """The check a job refers to no longer exists."""


class AlertDispatchError(UptimeError):
    """Alert dispatch failed for a check."""


class PlanLimitError(UptimeError):
    """A check violates the limits of its owner's plan."""


class ProfileNotFound(UptimeError):
    """The user has no plan profile."""
