"""Bearer token resolution for the JSON API."""

import logging

from django.utils import timezone

from .models import ApiToken, hash_token

logger = logging.getLogger(__name__)


def get_bearer_token(request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def resolve_token(raw: str) -> ApiToken | None:
    """Return the live token for ``raw``, or None if unknown/expired."""
    try:
        token = ApiToken.objects.select_related("user").get(
            token_hash=hash_token(raw)
        )
    except ApiToken.DoesNotExist:
        return None
    if token.is_expired:
        logger.info("Expired API token used for user %s", token.user_id)
        token.delete()
        return None
    return token


def authenticate_request(request):
    """Resolve the API caller from a bearer token or the session.

    Returns None when the caller is anonymous or their account is not
    active.
    """
    raw = get_bearer_token(request)
    if raw is not None:
        token = resolve_token(raw)
        if token is None:
            return None
        user = token.user
        token.last_used_at = timezone.now()
        token.save(update_fields=["last_used_at"])
        request.api_token = token
    else:
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return None

    if user.status != "active":
        return None
    return user
