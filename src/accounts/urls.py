"""URL configuration for the accounts API."""

from django.urls import path

from . import views

app_name = "accounts"

urlpatterns = [
    path("auth/login", views.login_view, name="login"),
    path("auth/logout", views.logout_view, name="logout"),
    path("auth/register", views.register_view, name="register"),
    path(
        "auth/register/invitation",
        views.register_invitation_view,
        name="register_invitation",
    ),
    path("users/me", views.me_view, name="me"),
    path("admin-users", views.admin_user_list, name="admin_user_list"),
    path("admin-users/stats", views.admin_user_stats, name="admin_user_stats"),
    path(
        "admin-users/<int:pk>/<str:action>",
        views.admin_user_action,
        name="admin_user_action",
    ),
    path("invitations/", views.invitation_list, name="invitation_list"),
]
