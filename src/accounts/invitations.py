"""Invitation issuing and redemption."""

import logging

from django.conf import settings
from django.core import signing
from django.db import transaction

from .models import CustomUser, Invitation

logger = logging.getLogger(__name__)

INVITATION_SALT = "accounts.invitation"


class InvitationError(Exception):
    """Token is malformed, expired or already used."""


def make_invitation_token(invitation: Invitation) -> str:
    signer = signing.TimestampSigner(salt=INVITATION_SALT)
    return signer.sign(str(invitation.pk))


def build_accept_url(token: str) -> str:
    base_url = settings.BASE_APP_URL.rstrip("/")
    return f"{base_url}/register/invitation?token={token}"


def send_invitation(invitation: Invitation) -> str:
    """Queue the invitation email and return the raw token."""
    from .tasks import send_invitation_email

    token = make_invitation_token(invitation)
    send_invitation_email.delay(invitation.pk, build_accept_url(token))
    logger.info(
        "Invitation %s queued for %s", invitation.pk, invitation.email
    )
    return token


def get_invitation_for_token(token: str) -> Invitation:
    signer = signing.TimestampSigner(salt=INVITATION_SALT)
    max_age = settings.INVITATION_MAX_AGE_HOURS * 60 * 60
    try:
        invitation_pk = signer.unsign(token, max_age=max_age)
    except signing.SignatureExpired:
        raise InvitationError("The invitation token has expired.")
    except signing.BadSignature:
        raise InvitationError("The invitation token is invalid.")

    try:
        invitation = Invitation.objects.select_related("school").get(
            pk=invitation_pk
        )
    except (Invitation.DoesNotExist, ValueError):
        raise InvitationError("The invitation token is invalid.")

    if invitation.is_accepted:
        raise InvitationError("The invitation has already been used.")
    return invitation


@transaction.atomic
def redeem_invitation(token: str, full_name: str, password: str):
    """Create the invited user as active and mark the invitation used."""
    invitation = get_invitation_for_token(token)
    if CustomUser.objects.filter(email__iexact=invitation.email).exists():
        raise InvitationError("A user with this email already exists.")

    user = CustomUser(
        username=invitation.email,
        email=invitation.email,
        full_name=full_name,
        role=invitation.role,
        school=invitation.school,
        status="active",
    )
    user.set_password(password)
    user.save()
    invitation.mark_accepted(user)
    logger.info("Invitation %s accepted by user %s", invitation.pk, user.pk)
    return user
