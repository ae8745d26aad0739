"""JSON API plumbing shared by the accounts and assets apps.

Error bodies always carry a ``detail`` key. Validation failures use a list
of ``{"loc": [...], "msg": ..., "type": ...}`` entries so clients can map
messages back onto individual form fields.
"""

import json
import logging
import uuid
from functools import wraps

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.http import Http404, JsonResponse
from django.views.decorators.csrf import csrf_exempt

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised inside API views; rendered as ``{"detail": ...}``."""

    def __init__(self, status: int, detail):
        super().__init__(detail)
        self.status = status
        self.detail = detail


def error_response(status: int, detail) -> JsonResponse:
    return JsonResponse({"detail": detail}, status=status)


def field_error(field: str, msg: str, loc_root: str = "body") -> ApiError:
    """Build a 422 error for a single field."""
    return ApiError(
        422, [{"loc": [loc_root, field], "msg": msg, "type": "value_error"}]
    )


def form_error_detail(form) -> list[dict]:
    """Flatten Django form errors into ``{loc, msg, type}`` entries."""
    detail = []
    for field, errors in form.errors.get_json_data().items():
        loc = ["body"] if field == "__all__" else ["body", field]
        for err in errors:
            detail.append(
                {"loc": loc, "msg": err["message"], "type": "value_error"}
            )
    return detail


def validation_error(form) -> ApiError:
    logger.debug("Validation failed: %s", form.errors.as_json())
    return ApiError(422, form_error_detail(form))


def parse_json(request) -> dict:
    """Decode a JSON object body; an empty body reads as ``{}``."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ApiError(400, "Invalid JSON body.")
    if not isinstance(data, dict):
        raise ApiError(
            422,
            [
                {
                    "loc": ["body"],
                    "msg": "Expected a JSON object.",
                    "type": "type_error",
                }
            ],
        )
    return data


def int_param(request, name: str, default: int, minimum: int = 0) -> int:
    raw = request.GET.get(name, "")
    if raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise field_error(name, "Value must be an integer.", "query")
    if value < minimum:
        raise field_error(
            name, f"Value must be greater than or equal to {minimum}.", "query"
        )
    return value


def uuid_param(request, name: str):
    """Optional UUID query param; None when absent."""
    raw = request.GET.get(name, "").strip()
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise field_error(name, "Value must be a valid UUID.", "query")


def paginate(request, queryset):
    """Apply ``skip``/``limit`` query params. Returns ``(items, total)``."""
    skip = int_param(request, "skip", 0)
    limit = int_param(request, "limit", settings.API_DEFAULT_LIMIT, minimum=1)
    limit = min(limit, settings.API_MAX_LIMIT)
    total = queryset.count()
    return list(queryset[skip : skip + limit]), total


def list_response(items: list, total: int | None = None) -> JsonResponse:
    response = JsonResponse(items, safe=False)
    response["X-Total-Count"] = str(len(items) if total is None else total)
    return response


def api_view(methods, auth=True):
    """Wrap a function view as a JSON endpoint.

    Enforces the allowed methods, resolves the bearer token (falling back
    to the session user for staff browsing the API) and converts
    ``ApiError``, ``Http404`` and ``PermissionDenied`` into JSON bodies.
    """
    allowed = list(methods)

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in allowed:
                response = error_response(405, "Method not allowed.")
                response["Allow"] = ", ".join(allowed)
                return response

            if auth:
                from accounts.tokens import authenticate_request

                user = authenticate_request(request)
                if user is None:
                    response = error_response(401, "Not authenticated.")
                    response["WWW-Authenticate"] = "Bearer"
                    return response
                request.user = user

            try:
                return view(request, *args, **kwargs)
            except ApiError as exc:
                return error_response(exc.status, exc.detail)
            except Http404:
                return error_response(404, "Not found.")
            except PermissionDenied:
                return error_response(403, "Not enough permissions.")

        return csrf_exempt(wrapper)

    return decorator
