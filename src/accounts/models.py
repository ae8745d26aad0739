"""Custom user, API token and invitation models for AULAS."""

import hashlib
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class CustomUserManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra):
        extra.setdefault("status", "active")
        extra.setdefault("role", "super_admin")
        return super().create_superuser(username, email, password, **extra)


class CustomUser(AbstractUser):
    """Staff member with a single role, optionally bound to one school."""

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("active", "Active"),
        ("suspended", "Suspended"),
    ]

    # Ordered: invitation role_id is the index into this list
    ROLE_CHOICES = [
        ("super_admin", "Super Admin"),
        ("school_admin", "School Admin"),
        ("teacher", "Teacher"),
        ("inventory_manager", "Inventory Manager"),
    ]

    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField("email address", blank=False, unique=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="pending"
    )
    role = models.CharField(
        max_length=30, choices=ROLE_CHOICES, default="teacher"
    )
    school = models.ForeignKey(
        "assets.School",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="users",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CustomUserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-created_at"]

    def __str__(self):
        return self.full_name or self.get_full_name() or self.username

    def save(self, *args, **kwargs):
        if self.is_superuser:
            self.role = "super_admin"
        self.is_active = self.status == "active"
        super().save(*args, **kwargs)

    @classmethod
    def role_for_id(cls, role_id: int) -> str:
        """Map an invitation ``role_id`` to its role slug."""
        if not 0 <= role_id < len(cls.ROLE_CHOICES):
            raise ValueError(f"Unknown role id {role_id}")
        return cls.ROLE_CHOICES[role_id][0]

    @property
    def is_super_admin(self) -> bool:
        return self.is_superuser or self.role == "super_admin"

    @property
    def roles(self) -> dict:
        return {
            slug: (slug == self.role)
            or (slug == "super_admin" and self.is_superuser)
            for slug, _label in self.ROLE_CHOICES
        }

    def activate(self):
        self.status = "active"
        self.save(update_fields=["status", "is_active", "role"])

    def suspend(self):
        self.status = "suspended"
        self.save(update_fields=["status", "is_active", "role"])
        self.api_tokens.all().delete()


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ApiTokenManager(models.Manager):
    def issue(self, user) -> tuple["ApiToken", str]:
        """Create a token for ``user``; the raw value is returned once."""
        raw = secrets.token_urlsafe(32)
        ttl = timedelta(hours=settings.API_TOKEN_TTL_HOURS)
        token = self.create(
            user=user,
            token_hash=hash_token(raw),
            expires_at=timezone.now() + ttl,
        )
        return token, raw


class ApiToken(models.Model):
    """Bearer token issued at login. Only the SHA-256 hash is stored."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="api_tokens",
    )
    token_hash = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    last_used_at = models.DateTimeField(null=True, blank=True)

    objects = ApiTokenManager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["expires_at"], name="idx_apitoken_expires"),
        ]

    def __str__(self):
        return f"Token for {self.user} (expires {self.expires_at:%Y-%m-%d})"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()


class Invitation(models.Model):
    """Invitation for a new user to join with a preset role and school."""

    email = models.EmailField()
    role = models.CharField(max_length=30, choices=CustomUser.ROLE_CHOICES)
    school = models.ForeignKey(
        "assets.School",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="invitations",
    )
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="sent_invitations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    accepted_user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="accepted_invitation",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Invitation for {self.email} ({self.get_role_display()})"

    def clean(self):
        super().clean()
        if self.role != "super_admin" and not self.school_id:
            raise ValidationError(
                {"school": "A school is required for this role."}
            )

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def mark_accepted(self, user):
        if self.is_accepted:
            raise ValidationError("Invitation has already been used.")
        self.accepted_at = timezone.now()
        self.accepted_user = user
        self.save(update_fields=["accepted_at", "accepted_user"])
