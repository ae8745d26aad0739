"""Authentication backend accepting an email address or a username."""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


def find_user(identifier: str):
    """Look up a user by email (case-insensitive) or exact username."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    if "@" in identifier:
        matches = list(User.objects.filter(email__iexact=identifier)[:2])
        return matches[0] if len(matches) == 1 else None
    return User.objects.filter(username=identifier).first()


class EmailOrUsernameBackend(ModelBackend):
    """Check the password of the user found by :func:`find_user`.

    Pending and suspended accounts never authenticate; the login view
    reports their state separately.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None or password is None:
            return None
        user = find_user(username)
        if user is None:
            # Run the hasher anyway so timing does not reveal unknown users
            User().set_password(password)
            return None
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None

    def user_can_authenticate(self, user):
        return super().user_can_authenticate(user) and user.status == "active"
