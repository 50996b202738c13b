"""
Django Admin configuration for uptime models.
"""
from django.contrib import admin

from .models import Alert, Check, CheckResult, Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ["user", "plan_type", "max_checks", "email_alerts_enabled", "telegram_alerts_enabled"]
    list_filter = ["plan_type", "email_alerts_enabled", "telegram_alerts_enabled"]
    search_fields = ["user__username", "user__email"]


@admin.register(Check)
class CheckAdmin(admin.ModelAdmin):
    list_display = ["display_name", "owner", "interval", "status", "last_status", "failure_count", "last_check_at"]
    list_filter = ["status", "interval", "last_status"]
    search_fields = ["url", "name", "owner__email"]
    readonly_fields = ["last_check_at", "last_status", "failure_count", "created_at", "updated_at"]
    ordering = ["-created_at"]


class ReadOnlyAdmin(admin.ModelAdmin):
    """Results and alerts are written by the pipeline only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        # Allow deletion for cleanup purposes
        return request.user.is_superuser


@admin.register(CheckResult)
class CheckResultAdmin(ReadOnlyAdmin):
    list_display = ["monitored_check", "region", "status_code", "latency_ms", "success", "timestamp"]
    list_filter = ["success", "region"]
    search_fields = ["monitored_check__url", "error_message"]
    date_hierarchy = "timestamp"
    ordering = ["-timestamp"]


@admin.register(Alert)
class AlertAdmin(ReadOnlyAdmin):
    list_display = ["monitored_check", "channel", "success", "sent_at"]
    list_filter = ["channel", "success"]
    search_fields = ["monitored_check__url", "error_message"]
    date_hierarchy = "sent_at"
    ordering = ["-sent_at"]
