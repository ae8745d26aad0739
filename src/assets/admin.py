"""Admin configuration for the inventory using django-unfold."""

from datetime import date

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display
from unfold.enums import ActionVariant

from django.contrib import admin, messages
from django.http import HttpResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.html import format_html

from .models import (
    Asset,
    AssetCategory,
    AssetEvent,
    AssetIncident,
    AssetTemplate,
    Classroom,
    QRCode,
    School,
)
from .services.qrcodes import generate_qr_code

INCIDENT_STATUS_LABELS = {
    "open": "danger",
    "in_progress": "warning",
    "resolved": "success",
}


class ClassroomInline(TabularInline):
    model = Classroom
    extra = 0
    fields = ["name", "code", "capacity"]


@admin.register(School)
class SchoolAdmin(ModelAdmin):
    list_display = ["name", "address", "created_at"]
    search_fields = ["name", "address"]
    inlines = [ClassroomInline]


@admin.register(Classroom)
class ClassroomAdmin(ModelAdmin):
    list_display = ["name", "code", "school", "capacity"]
    list_filter = [("school", RelatedDropdownFilter)]
    search_fields = ["name", "code", "school__name"]
    autocomplete_fields = ["school"]


class AssetTemplateInline(TabularInline):
    model = AssetTemplate
    extra = 0
    fields = ["name", "manufacturer", "model_number"]


@admin.register(AssetCategory)
class AssetCategoryAdmin(ModelAdmin):
    list_display = ["name", "description"]
    search_fields = ["name"]
    inlines = [AssetTemplateInline]


@admin.register(AssetTemplate)
class AssetTemplateAdmin(ModelAdmin):
    list_display = ["name", "category", "manufacturer", "model_number"]
    list_filter = [("category", RelatedDropdownFilter)]
    search_fields = ["name", "manufacturer", "model_number"]
    autocomplete_fields = ["category"]


class AssetIncidentInline(TabularInline):
    model = AssetIncident
    extra = 0
    fields = ["description", "status", "reported_by", "reported_at"]
    readonly_fields = ["reported_by", "reported_at"]


@admin.register(Asset)
class AssetAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "classroom",
        "serial_number",
        "display_status",
        "value_estimate",
        "created_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("template__category", RelatedDropdownFilter),
        ("classroom__school", RelatedDropdownFilter),
    ]
    search_fields = ["serial_number", "template__name", "classroom__name"]
    autocomplete_fields = ["template", "classroom"]
    readonly_fields = [
        "id",
        "photo_preview",
        "created_by",
        "created_at",
        "updated_at",
    ]
    inlines = [AssetIncidentInline]
    fieldsets = (
        (
            "Details",
            {
                "fields": (
                    "id",
                    "template",
                    "classroom",
                    "serial_number",
                    "status",
                ),
                "classes": ["tab"],
            },
        ),
        (
            "Value",
            {
                "fields": ("purchase_date", "value_estimate"),
                "classes": ["tab"],
            },
        ),
        (
            "Image",
            {
                "fields": ("image_url", "photo", "photo_preview"),
                "classes": ["tab"],
            },
        ),
        (
            "Tracking",
            {
                "fields": ("created_by", "created_at", "updated_at"),
                "classes": ["tab"],
            },
        ),
    )
    actions = [
        "export_selected_xlsx",
        "print_stickers",
        "generate_qr_codes",
        "print_qr_sheet",
    ]

    def get_queryset(self, request):
        return super().get_queryset(request).with_related()

    @display(description="Asset", header=True)
    def display_header(self, obj):
        name = obj.template.name if obj.template else "(no template)"
        return name, obj.short_id

    @display(
        description="Status",
        label={
            "available": "success",
            "in_use": "info",
            "maintenance": "warning",
            "retired": "default",
        },
    )
    def display_status(self, obj):
        return obj.status

    @display(description="Photo")
    def photo_preview(self, obj):
        if obj.display_image:
            return format_html(
                '<img src="{}" height="120" />', obj.display_image
            )
        return "-"

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
        if not change:
            obj.record_event("created", user=request.user, source="admin")

    @action(
        description="Export selected to Excel",
        icon="download",
        variant=ActionVariant.PRIMARY,
    )
    def export_selected_xlsx(self, request, queryset):
        from .services.export import export_assets_xlsx

        buffer = export_assets_xlsx(queryset)
        response = HttpResponse(
            buffer.getvalue(),
            content_type="application/vnd.openxmlformats-officedocument"
            ".spreadsheetml.sheet",
        )
        filename = f"activos-{date.today().isoformat()}.xlsx"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @action(description="Print stickers", icon="print")
    def print_stickers(self, request, queryset):
        from .tasks import print_asset_sticker

        count = 0
        for pk in queryset.values_list("pk", flat=True):
            print_asset_sticker.delay(str(pk), user_id=request.user.pk)
            count += 1
        messages.success(request, f"{count} sticker(s) queued for printing.")

    @action(description="Generate QR codes")
    def generate_qr_codes(self, request, queryset):
        count = 0
        for asset in queryset:
            generate_qr_code(asset, user=request.user)
            count += 1
        messages.success(request, f"{count} QR code(s) generated.")

    @action(description="Open QR label sheet")
    def print_qr_sheet(self, request, queryset):
        pks = ",".join(str(pk) for pk in queryset.values_list("pk", flat=True))
        return redirect(f"{reverse('assets:asset_labels')}?ids={pks}")


@admin.register(QRCode)
class QRCodeAdmin(ModelAdmin):
    list_display = ["asset", "qr_url", "updated_at"]
    search_fields = ["qr_url", "asset__serial_number"]
    readonly_fields = ["asset", "payload", "qr_url", "image", "created_at"]

    def has_add_permission(self, request):
        return False


@admin.register(AssetIncident)
class AssetIncidentAdmin(ModelAdmin):
    list_display = [
        "asset",
        "display_status",
        "reported_by",
        "reported_at",
        "resolved_at",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["description", "asset__serial_number"]
    date_hierarchy = "reported_at"
    readonly_fields = ["resolved_at"]
    autocomplete_fields = ["asset"]
    actions = ["mark_resolved"]

    @display(description="Status", label=INCIDENT_STATUS_LABELS)
    def display_status(self, obj):
        return obj.status

    @action(description="Mark as resolved")
    def mark_resolved(self, request, queryset):
        count = 0
        for incident in queryset.exclude(status="resolved"):
            incident.set_status("resolved", user=request.user)
            count += 1
        messages.success(request, f"{count} incident(s) resolved.")


@admin.register(AssetEvent)
class AssetEventAdmin(ModelAdmin):
    list_display = ["asset", "display_event", "user", "created_at"]
    list_filter = [("event_type", ChoicesDropdownFilter)]
    search_fields = ["asset__serial_number"]
    date_hierarchy = "created_at"
    readonly_fields = ["asset", "event_type", "user", "metadata", "created_at"]

    @display(
        description="Event",
        label={
            "created": "success",
            "status_changed": "warning",
            "incident_reported": "danger",
            "incident_resolved": "success",
        },
    )
    def display_event(self, obj):
        return obj.event_type

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
