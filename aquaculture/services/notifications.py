from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from aquaculture.models import Notification, UserProfile

logger = logging.getLogger(__name__)


def notify(user, title, message="", type=Notification.INFO, link=""):
    if user is None:
        return None
    return Notification.objects.create(user=user, title=title, message=message, type=type, link=link)


def company_admins(company):
    return User.objects.filter(
        is_active=True,
        profile__company=company,
        profile__role__in=[UserProfile.ADMIN, UserProfile.SUPER_ADMIN],
    )


def send_email(subject, recipients, template, context):
    """Send a plain+HTML email rendered from ``emails/<template>``.

    Mail failures are logged; the calling workflow carries on.
    """
    recipients = [r for r in recipients if r]
    if not recipients:
        return False
    context = {"product_name": settings.PRODUCT_NAME, **context}
    text_body = render_to_string(f"emails/{template}.txt", context)
    html_body = render_to_string(f"emails/{template}.html", context)
    try:
        msg = EmailMultiAlternatives(subject, text_body, settings.DEFAULT_FROM_EMAIL, recipients)
        msg.attach_alternative(html_body, "text/html")
        msg.send()
        return True
    except Exception:
        logger.exception("Failed to send '%s' email to %s", subject, recipients)
        return False


def notify_company_admins(company, title, message="", type=Notification.INFO, link="", exclude=None, email=False):
    admins = company_admins(company)
    if exclude is not None:
        admins = admins.exclude(pk=exclude.pk)
    created = [notify(u, title, message, type, link) for u in admins]
    if email:
        send_email(
            title,
            [u.email for u in admins],
            "notification",
            {"title": title, "message": message, "link": link},
        )
    return created


def notifications_for(user, limit=50):
    return list(Notification.objects.filter(user=user).order_by("-created_at")[:limit])


def unread_count(user):
    return Notification.objects.filter(user=user, read=False).count()


def mark_read(user, notification_id):
    return Notification.objects.filter(user=user, pk=notification_id).update(read=True)


def mark_all_read(user):
    return Notification.objects.filter(user=user, read=False).update(read=True)


def delete_notification(user, notification_id):
    deleted, _ = Notification.objects.filter(user=user, pk=notification_id).delete()
    return deleted


def delete_all(user):
    deleted, _ = Notification.objects.filter(user=user).delete()
    return deleted
