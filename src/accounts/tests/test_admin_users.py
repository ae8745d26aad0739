"""Tests for the super-admin user management endpoints."""

import pytest

from django.urls import reverse

from accounts.models import ApiToken
from assets.factories import UserFactory


def action_url(user, action):
    return reverse(
        "accounts:admin_user_action", kwargs={"pk": user.pk, "action": action}
    )


@pytest.mark.django_db
class TestAdminUserList:
    def test_requires_super_admin(self, api_client, school_admin):
        response = api_client(school_admin).get(
            reverse("accounts:admin_user_list")
        )
        assert response.status_code == 403

    def test_lists_all_users(self, api_client, super_admin, teacher):
        response = api_client(super_admin).get(
            reverse("accounts:admin_user_list")
        )
        assert response.status_code == 200
        assert response["X-Total-Count"] == "2"
        ids = {row["id"] for row in response.json()}
        assert ids == {str(super_admin.pk), str(teacher.pk)}

    def test_search_and_status_filter(self, api_client, super_admin, teacher):
        UserFactory(full_name="Pedro Pendiente", status="pending")
        client = api_client(super_admin)

        response = client.get(
            reverse("accounts:admin_user_list"), {"search": "pendiente"}
        )
        assert [row["full_name"] for row in response.json()] == [
            "Pedro Pendiente"
        ]

        response = client.get(
            reverse("accounts:admin_user_list"), {"status_filter": "active"}
        )
        assert response["X-Total-Count"] == "2"

    def test_unknown_status_filter_is_422(self, api_client, super_admin):
        response = api_client(super_admin).get(
            reverse("accounts:admin_user_list"), {"status_filter": "bogus"}
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == [
            "query",
            "status_filter",
        ]

    def test_pagination(self, api_client, super_admin):
        UserFactory.create_batch(4)
        response = api_client(super_admin).get(
            reverse("accounts:admin_user_list"), {"skip": 1, "limit": 2}
        )
        assert len(response.json()) == 2
        assert response["X-Total-Count"] == "5"

    def test_stats(self, api_client, super_admin, teacher, school_admin):
        UserFactory(status="pending")
        response = api_client(super_admin).get(
            reverse("accounts:admin_user_stats")
        )
        data = response.json()
        assert data["total_users"] == 4
        assert data["pending_users"] == 1
        assert data["super_admins"] == 1
        assert data["school_admins"] == 1
        assert data["teachers"] == 2


@pytest.mark.django_db
class TestAdminUserActions:
    def test_activate_pending_user(self, api_client, super_admin):
        pending = UserFactory(status="pending")
        response = api_client(super_admin).post(
            action_url(pending, "activate")
        )
        assert response.status_code == 200
        pending.refresh_from_db()
        assert pending.status == "active"
        assert pending.is_active is True

    def test_suspend_revokes_tokens(self, api_client, super_admin, teacher):
        ApiToken.objects.issue(teacher)
        response = api_client(super_admin).post(
            action_url(teacher, "suspend")
        )
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"
        assert not teacher.api_tokens.exists()

    def test_cannot_suspend_self(self, api_client, super_admin):
        response = api_client(super_admin).post(
            action_url(super_admin, "suspend")
        )
        assert response.status_code == 400

    def test_unknown_action_is_404(self, api_client, super_admin, teacher):
        response = api_client(super_admin).post(
            action_url(teacher, "promote")
        )
        assert response.status_code == 404

    def test_unknown_user_is_404(self, api_client, super_admin):
        response = api_client(super_admin).post(
            reverse(
                "accounts:admin_user_action",
                kwargs={"pk": 999999, "action": "activate"},
            )
        )
        assert response.status_code == 404
