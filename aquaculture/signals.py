from django.contrib.auth.models import User
from django.contrib.auth.signals import (
    user_logged_in,
    user_login_failed,
    user_logged_out,
)
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AuditLog, UserProfile
from .services.audit import log_action


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """Ensure each user has an associated profile."""
    if created and not UserProfile.objects.filter(user=instance).exists():
        role = UserProfile.SUPER_ADMIN if instance.is_superuser else UserProfile.USER
        UserProfile.objects.create(user=instance, role=role, full_name=instance.get_full_name())


@receiver(user_logged_in)
def log_login(sender, user, request, **kwargs):
    log_action(AuditLog.LOGIN, "auth_user", user.pk, user=user)


@receiver(user_logged_out)
def log_logout(sender, user, request, **kwargs):
    if user and user.is_authenticated:
        log_action(AuditLog.LOGOUT, "auth_user", user.pk, user=user)


@receiver(user_login_failed)
def log_login_failed(sender, credentials, request, **kwargs):
    log_action(
        AuditLog.LOGIN_FAILED,
        "auth_user",
        new={"username": credentials.get("username", "")},
    )
