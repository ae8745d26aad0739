"""Admin configuration for accounts app."""

import logging

from unfold.admin import ModelAdmin
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.contrib.admin.models import CHANGE, LogEntry
from django.contrib.auth.admin import UserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from django.contrib.contenttypes.models import ContentType

from .invitations import send_invitation
from .models import ApiToken, CustomUser, Invitation

logger = logging.getLogger(__name__)


class CustomUserCreationForm(UserCreationForm):
    class Meta:
        model = CustomUser
        fields = ("username", "email", "full_name", "role", "school")


class CustomUserChangeForm(UserChangeForm):
    class Meta:
        model = CustomUser
        fields = "__all__"


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    model = CustomUser
    list_display = [
        "display_user",
        "email",
        "role",
        "school",
        "display_status",
        "last_login",
    ]
    list_filter = ["status", "role", "school"]
    search_fields = ["username", "email", "full_name"]
    autocomplete_fields = ["school"]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": ("username", "password", "full_name", "email"),
            },
        ),
        (
            "Access",
            {
                "classes": ["tab"],
                "fields": ("status", "role", "school", "is_staff", "is_superuser"),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "created_at"),
            },
        ),
    )
    readonly_fields = ["last_login", "created_at"]
    add_fieldsets = (
        (
            None,
            {
                "classes": ["wide"],
                "fields": (
                    "username",
                    "email",
                    "full_name",
                    "role",
                    "school",
                    "password1",
                    "password2",
                ),
            },
        ),
    )
    actions = ["activate_users", "suspend_users"]

    @display(description="User", ordering="username")
    def display_user(self, obj):
        return str(obj)

    @display(
        description="Status",
        label={
            "active": "success",
            "pending": "warning",
            "suspended": "danger",
        },
    )
    def display_status(self, obj):
        return obj.status

    def _log_change(self, request, obj, message):
        """Create a LogEntry for a bulk action change."""
        ct = ContentType.objects.get_for_model(obj)
        LogEntry.objects.create(
            user_id=request.user.pk,
            content_type_id=ct.pk,
            object_id=str(obj.pk),
            object_repr=str(obj),
            action_flag=CHANGE,
            change_message=message,
        )

    @action(description="Activate selected users")
    def activate_users(self, request, queryset):
        count = 0
        for user in queryset.exclude(status="active"):
            user.activate()
            self._log_change(request, user, "Activated via bulk action")
            count += 1
        messages.success(request, f"{count} user(s) activated.")

    @action(description="Suspend selected users")
    def suspend_users(self, request, queryset):
        count = 0
        for user in queryset.exclude(pk=request.user.pk).exclude(
            status="suspended"
        ):
            user.suspend()
            self._log_change(request, user, "Suspended via bulk action")
            count += 1
        messages.success(request, f"{count} user(s) suspended.")


@admin.register(Invitation)
class InvitationAdmin(ModelAdmin):
    list_display = [
        "email",
        "role",
        "school",
        "invited_by",
        "created_at",
        "display_accepted",
    ]
    list_filter = ["role", "school"]
    search_fields = ["email"]
    readonly_fields = ["invited_by", "accepted_at", "accepted_user"]
    actions = ["resend_invitations"]

    @display(description="Accepted", boolean=True)
    def display_accepted(self, obj):
        return obj.is_accepted

    def save_model(self, request, obj, form, change):
        if not change:
            obj.invited_by = request.user
        super().save_model(request, obj, form, change)
        if not change:
            send_invitation(obj)

    @action(description="Resend invitation email")
    def resend_invitations(self, request, queryset):
        pending = queryset.filter(accepted_at__isnull=True)
        for invitation in pending:
            send_invitation(invitation)
        messages.success(
            request, f"{pending.count()} invitation(s) queued for sending."
        )


@admin.register(ApiToken)
class ApiTokenAdmin(ModelAdmin):
    list_display = ["user", "created_at", "expires_at", "last_used_at"]
    search_fields = ["user__username", "user__email"]
    readonly_fields = ["user", "token_hash", "created_at", "last_used_at"]

    def has_add_permission(self, request):
        return False
