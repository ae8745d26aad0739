"""Celery tasks for the accounts app."""

import logging

from celery import shared_task

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(OSError,),
    retry_backoff=True,
)
def send_invitation_email(self, invitation_id: int, accept_url: str) -> None:
    """Render and send the invitation email with HTML and text parts."""
    from .models import Invitation

    try:
        invitation = Invitation.objects.select_related(
            "school", "invited_by"
        ).get(pk=invitation_id)
    except Invitation.DoesNotExist:
        logger.warning("Invitation %s vanished before sending", invitation_id)
        return

    context = {
        "site_name": settings.SITE_NAME,
        "invitation": invitation,
        "role_label": invitation.get_role_display(),
        "school_name": invitation.school.name if invitation.school else "",
        "accept_url": accept_url,
        "max_age_hours": settings.INVITATION_MAX_AGE_HOURS,
    }
    msg = EmailMultiAlternatives(
        subject=f"{settings.SITE_NAME} - Invitation",
        body=render_to_string("emails/invitation.txt", context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[invitation.email],
    )
    msg.attach_alternative(
        render_to_string("emails/invitation.html", context), "text/html"
    )
    msg.send()
    logger.info("Invitation email sent to %s", invitation.email)
