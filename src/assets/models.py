"""Models for the AULAS school inventory."""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class School(models.Model):
    """A school; every classroom and non-global user belongs to one."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200, unique=True)
    address = models.TextField(blank=True)
    description = models.TextField(blank=True)
    logo_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Classroom(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(
        School, on_delete=models.CASCADE, related_name="classrooms"
    )
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=30, blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["school__name", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["school", "name"],
                name="unique_classroom_per_school",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.school})"


class AssetCategory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "asset category"
        verbose_name_plural = "asset categories"
        ordering = ["name"]

    def __str__(self):
        return self.name


class AssetTemplate(models.Model):
    """Reusable definition (name, maker, model) shared by many assets."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey(
        AssetCategory, on_delete=models.PROTECT, related_name="templates"
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    manufacturer = models.CharField(max_length=100, blank=True)
    model_number = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["category", "name"],
                name="unique_template_per_category",
            ),
        ]

    def __str__(self):
        return self.name


class AssetQuerySet(models.QuerySet):
    def with_related(self):
        return self.select_related(
            "template",
            "template__category",
            "classroom",
            "classroom__school",
            "qr_code",
        )

    def for_school(self, school_id):
        return self.filter(classroom__school_id=school_id)


class Asset(models.Model):
    """Individual tagged item, located in (at most) one classroom."""

    STATUS_CHOICES = [
        ("available", "Available"),
        ("in_use", "In use"),
        ("maintenance", "Maintenance"),
        ("retired", "Retired"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(
        AssetTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )
    classroom = models.ForeignKey(
        Classroom,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assets",
    )
    serial_number = models.CharField(max_length=100, blank=True)
    purchase_date = models.DateField(null=True, blank=True)
    value_estimate = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    image_url = models.CharField(max_length=500, blank=True)
    photo = models.ImageField(upload_to="assets/", blank=True, null=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="available"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_assets",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AssetQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(fields=["created_at"], name="idx_asset_created_at"),
        ]

    def __str__(self):
        name = self.template.name if self.template else "Asset"
        return f"{name} ({self.short_id})"

    @property
    def short_id(self) -> str:
        """Last eight characters of the id, as printed on stickers."""
        return str(self.pk)[-8:]

    @property
    def school_id(self):
        return self.classroom.school_id if self.classroom else None

    @property
    def display_image(self) -> str:
        """The stored photo's URL, falling back to ``image_url``."""
        if self.photo:
            return self.photo.url
        return self.image_url

    def record_event(self, event_type, user=None, **metadata):
        return AssetEvent.objects.create(
            asset=self,
            event_type=event_type,
            user=user,
            metadata=metadata,
        )


class QRCode(models.Model):
    """QR code for an asset's detail deep link; one per asset."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asset = models.OneToOneField(
        Asset, on_delete=models.CASCADE, related_name="qr_code"
    )
    payload = models.JSONField(default=dict)
    qr_url = models.CharField(max_length=500)
    image = models.ImageField(upload_to="qrcodes/", blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "QR code"
        verbose_name_plural = "QR codes"

    def __str__(self):
        return self.qr_url


class AssetEvent(models.Model):
    """Immutable audit log of everything that happens to an asset."""

    EVENT_CHOICES = [
        ("created", "Created"),
        ("updated", "Updated"),
        ("status_changed", "Status changed"),
        ("image_updated", "Image updated"),
        ("qr_generated", "QR generated"),
        ("incident_reported", "Incident reported"),
        ("incident_resolved", "Incident resolved"),
        ("sticker_printed", "Sticker printed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="events"
    )
    event_type = models.CharField(max_length=30, choices=EVENT_CHOICES)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="asset_events",
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="idx_event_created_at"),
            models.Index(fields=["event_type"], name="idx_event_type"),
        ]

    def __str__(self):
        return f"{self.asset_id} - {self.get_event_type_display()}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(
                "Asset events are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Asset events are immutable and cannot be deleted."
        )


class AssetIncident(models.Model):
    """A reported problem (damage, fault, loss) with an asset."""

    STATUS_CHOICES = [
        ("open", "Open"),
        ("in_progress", "In progress"),
        ("resolved", "Resolved"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="incidents"
    )
    description = models.TextField()
    photo_url = models.CharField(max_length=500, blank=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="open"
    )
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reported_incidents",
    )
    reported_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-reported_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_incident_status"),
            models.Index(
                fields=["reported_at"], name="idx_incident_reported_at"
            ),
        ]

    def __str__(self):
        return f"Incident on {self.asset} ({self.get_status_display()})"

    @property
    def is_resolved(self) -> bool:
        return self.status == "resolved"

    def set_status(self, new_status, user=None):
        """Move to ``new_status``; resolving stamps ``resolved_at``.

        Reopening a resolved incident clears the stamp again.
        """
        valid = {slug for slug, _label in self.STATUS_CHOICES}
        if new_status not in valid:
            raise ValidationError(f"Unknown incident status '{new_status}'.")
        if new_status == self.status:
            return

        was_resolved = self.is_resolved
        self.status = new_status
        if new_status == "resolved":
            self.resolved_at = timezone.now()
        elif was_resolved:
            self.resolved_at = None
        self.save(update_fields=["status", "resolved_at", "updated_at"])

        if new_status == "resolved":
            self.asset.record_event(
                "incident_resolved", user=user, incident_id=str(self.pk)
            )
