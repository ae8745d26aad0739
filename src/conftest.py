"""Shared pytest fixtures for AULAS tests."""

import pytest

from django.conf import settings
from django.test import Client

# Static files without the manifest so admin pages render in tests
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
settings.BASE_APP_URL = "https://aulas.example.com"


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test.

    Prevents rate-limit counters (django_ratelimit) from bleeding
    across tests.
    """
    from django.core.cache import cache

    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"


# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def school(db):
    from assets.factories import SchoolFactory

    return SchoolFactory(name="Escuela Central")


@pytest.fixture
def other_school(db):
    from assets.factories import SchoolFactory

    return SchoolFactory(name="Escuela Norte")


@pytest.fixture
def super_admin(db, password):
    from assets.factories import UserFactory

    return UserFactory(
        username="root",
        email="root@example.com",
        role="super_admin",
        school=None,
        password=password,
    )


@pytest.fixture
def school_admin(db, school, password):
    from assets.factories import UserFactory

    return UserFactory(
        username="director",
        email="director@example.com",
        role="school_admin",
        school=school,
        password=password,
    )


@pytest.fixture
def teacher(db, school, password):
    from assets.factories import UserFactory

    return UserFactory(
        username="maestra",
        email="maestra@example.com",
        role="teacher",
        school=school,
        password=password,
    )


@pytest.fixture
def inventory_manager(db, school, password):
    from assets.factories import UserFactory

    return UserFactory(
        username="almacen",
        email="almacen@example.com",
        role="inventory_manager",
        school=school,
        password=password,
    )


# --- Inventory fixtures ---


@pytest.fixture
def classroom(school):
    from assets.factories import ClassroomFactory

    return ClassroomFactory(school=school, name="Aula 101", code="A-101")


@pytest.fixture
def category(db):
    from assets.factories import AssetCategoryFactory

    return AssetCategoryFactory(name="Audiovisual")


@pytest.fixture
def template(category):
    from assets.factories import AssetTemplateFactory

    return AssetTemplateFactory(
        category=category, name="Projector Epson X200 HD Ultra"
    )


@pytest.fixture
def asset(template, classroom, inventory_manager):
    from assets.factories import AssetFactory

    return AssetFactory(
        template=template,
        classroom=classroom,
        serial_number="SN-0001",
        created_by=inventory_manager,
    )


# --- Client fixtures ---


class ApiClient(Client):
    """Test client that sends a bearer token and JSON bodies."""

    def __init__(self, token=None, **defaults):
        if token:
            defaults["HTTP_AUTHORIZATION"] = f"Bearer {token}"
        super().__init__(**defaults)

    def _json(self, method, path, data=None, **extra):
        return getattr(super(), method)(
            path,
            data=data if data is not None else {},
            content_type="application/json",
            **extra,
        )

    def post(self, path, data=None, **extra):
        return self._json("post", path, data, **extra)

    def put(self, path, data=None, **extra):
        return self._json("put", path, data, **extra)

    def patch(self, path, data=None, **extra):
        return self._json("patch", path, data, **extra)


@pytest.fixture
def api_client(db):
    """Build an ``ApiClient`` authenticated as the given user (or anon)."""
    from accounts.models import ApiToken

    def _make(user=None):
        if user is None:
            return ApiClient()
        _token, raw = ApiToken.objects.issue(user)
        return ApiClient(token=raw)

    return _make
