"""Authentication, user administration and invitation API views."""

import logging

from django_ratelimit.decorators import ratelimit

from django.contrib.auth import authenticate
from django.db.models import Count, Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt

from aulas.api import (
    ApiError,
    api_view,
    error_response,
    field_error,
    list_response,
    paginate,
    parse_json,
    validation_error,
)

from .backends import find_user
from .forms import (
    InvitationForm,
    InvitationRegistrationForm,
    LoginForm,
    RegistrationForm,
)
from .invitations import InvitationError, redeem_invitation, send_invitation
from .models import ApiToken, CustomUser, Invitation

logger = logging.getLogger(__name__)


def user_payload(user) -> dict:
    return {
        "id": str(user.pk),
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "status": user.status,
        "roles": user.roles,
        "school_id": str(user.school_id) if user.school_id else None,
        "created_at": user.created_at.isoformat(),
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "is_active": user.is_active,
        "is_superuser": user.is_super_admin,
    }


def invitation_payload(invitation) -> dict:
    return {
        "id": invitation.pk,
        "email": invitation.email,
        "role": invitation.role,
        "school_id": (
            str(invitation.school_id) if invitation.school_id else None
        ),
        "created_at": invitation.created_at.isoformat(),
        "accepted_at": (
            invitation.accepted_at.isoformat()
            if invitation.accepted_at
            else None
        ),
    }


def require_super_admin(user):
    if not user.is_super_admin:
        raise ApiError(403, "Only super administrators may do this.")


# --- Authentication ---


@csrf_exempt
@ratelimit(key="ip", rate="10/m", method="POST", block=True)
def login_view(request):
    """Exchange form-encoded credentials for a bearer token."""
    if request.method != "POST":
        response = error_response(405, "Method not allowed.")
        response["Allow"] = "POST"
        return response

    form = LoginForm(request.POST)
    if not form.is_valid():
        return JsonResponse(
            {"detail": validation_error(form).detail}, status=422
        )

    identifier = form.cleaned_data["username"]
    password = form.cleaned_data["password"]
    user = authenticate(request, username=identifier, password=password)
    if user is None:
        # Report account state only when the password is right
        candidate = find_user(identifier)
        if candidate is not None and candidate.check_password(password):
            if candidate.status == "pending":
                return error_response(
                    403, "Account pending approval by an administrator."
                )
            if candidate.status == "suspended":
                return error_response(
                    403, "This account has been suspended."
                )
        logger.info("Failed login for %r", identifier)
        return error_response(401, "Incorrect username or password.")

    _token, raw = ApiToken.objects.issue(user)
    user.last_login = timezone.now()
    user.save(update_fields=["last_login"])
    logger.info("User %s logged in", user.pk)
    return JsonResponse({"access_token": raw, "token_type": "bearer"})


@api_view(["POST"])
def logout_view(request):
    token = getattr(request, "api_token", None)
    if token is not None:
        token.delete()
    return JsonResponse({"detail": "Logged out."})


@csrf_exempt
@ratelimit(key="ip", rate="10/m", method="POST", block=True)
@api_view(["POST"], auth=False)
def register_view(request):
    """Self-registration; the account waits for an administrator."""
    form = RegistrationForm(parse_json(request))
    if not form.is_valid():
        raise validation_error(form)

    email = form.cleaned_data["email"]
    user = CustomUser(
        username=email,
        email=email,
        full_name=form.cleaned_data["full_name"],
        status="pending",
    )
    user.set_password(form.cleaned_data["password"])
    user.save()
    logger.info("Registered pending user %s", user.pk)
    return JsonResponse(user_payload(user), status=201)


@csrf_exempt
@ratelimit(key="ip", rate="10/m", method="POST", block=True)
@api_view(["POST"], auth=False)
def register_invitation_view(request):
    form = InvitationRegistrationForm(parse_json(request))
    if not form.is_valid():
        raise validation_error(form)
    try:
        user = redeem_invitation(
            form.cleaned_data["invitation_token"],
            form.cleaned_data["full_name"].strip(),
            form.cleaned_data["password"],
        )
    except InvitationError as exc:
        raise ApiError(400, str(exc))
    return JsonResponse(user_payload(user), status=201)


@api_view(["GET"])
def me_view(request):
    return JsonResponse(user_payload(request.user))


# --- User administration ---


@api_view(["GET"])
def admin_user_list(request):
    require_super_admin(request.user)
    queryset = CustomUser.objects.all()

    search = request.GET.get("search", "").strip()
    if search:
        queryset = queryset.filter(
            Q(full_name__icontains=search)
            | Q(email__icontains=search)
            | Q(username__icontains=search)
        )

    status_filter = request.GET.get("status_filter", "")
    if status_filter and status_filter != "all":
        valid = {slug for slug, _label in CustomUser.STATUS_CHOICES}
        if status_filter not in valid:
            raise field_error(
                "status_filter", "Unknown status.", loc_root="query"
            )
        queryset = queryset.filter(status=status_filter)

    users, total = paginate(request, queryset)
    return list_response([user_payload(u) for u in users], total)


@api_view(["GET"])
def admin_user_stats(request):
    require_super_admin(request.user)
    stats = CustomUser.objects.aggregate(
        total_users=Count("pk"),
        active_users=Count("pk", filter=Q(status="active")),
        suspended_users=Count("pk", filter=Q(status="suspended")),
        pending_users=Count("pk", filter=Q(status="pending")),
        super_admins=Count(
            "pk", filter=Q(role="super_admin") | Q(is_superuser=True)
        ),
        school_admins=Count("pk", filter=Q(role="school_admin")),
        teachers=Count("pk", filter=Q(role="teacher")),
        inventory_managers=Count("pk", filter=Q(role="inventory_manager")),
    )
    return JsonResponse(stats)


ADMIN_USER_ACTIONS = ("activate", "suspend")


@api_view(["POST"])
def admin_user_action(request, pk, action):
    require_super_admin(request.user)
    if action not in ADMIN_USER_ACTIONS:
        raise ApiError(404, f"Unknown action '{action}'.")
    target = get_object_or_404(CustomUser, pk=pk)

    if action == "suspend":
        if target.pk == request.user.pk:
            raise ApiError(400, "You cannot suspend your own account.")
        target.suspend()
    else:
        target.activate()
    logger.info("User %s: %s by %s", target.pk, action, request.user.pk)
    return JsonResponse(user_payload(target))


# --- Invitations ---


@api_view(["GET", "POST"])
def invitation_list(request):
    user = request.user
    if user.role not in ("super_admin", "school_admin") and not (
        user.is_super_admin
    ):
        raise ApiError(403, "Not enough permissions.")

    if request.method == "GET":
        queryset = Invitation.objects.all()
        if not user.is_super_admin:
            queryset = queryset.filter(school_id=user.school_id)
        invitations, total = paginate(request, queryset)
        return list_response(
            [invitation_payload(i) for i in invitations], total
        )

    form = InvitationForm(parse_json(request))
    if not form.is_valid():
        raise validation_error(form)

    role = form.cleaned_data["role"]
    school = form.cleaned_data.get("school_id")
    if not user.is_super_admin:
        if role == "super_admin":
            raise ApiError(403, "Only super administrators may invite them.")
        if school is None or school.pk != user.school_id:
            raise field_error(
                "school_id", "You may only invite users to your own school."
            )

    invitation = Invitation.objects.create(
        email=form.cleaned_data["email"],
        role=role,
        school=school if role != "super_admin" else None,
        invited_by=user,
    )
    send_invitation(invitation)
    return JsonResponse(invitation_payload(invitation), status=201)
