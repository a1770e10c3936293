from __future__ import annotations

import logging

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from aquaculture.models import AuditLog, UserProfile
from aquaculture.services import audit

logger = logging.getLogger(__name__)

VALID_ROLES = [r for r, _ in UserProfile.ROLE_CHOICES]


def _actor_profile(actor):
    profile = getattr(actor, "profile", None)
    if not profile or not profile.is_admin:
        raise ValidationError("Only admins can manage users.")
    return profile


def _check_role_grant(actor_profile, role):
    if role not in VALID_ROLES:
        raise ValidationError({"role": f"Unknown role '{role}'."})
    if role == UserProfile.SUPER_ADMIN and not actor_profile.is_super_admin:
        raise ValidationError({"role": "Only a super admin can grant the super admin role."})


def _check_same_company(actor_profile, user):
    if actor_profile.is_super_admin:
        return
    if getattr(user, "profile", None) is None or user.profile.company_id != actor_profile.company_id:
        raise ValidationError("User belongs to another company.")


def users_for_company(company, search=None):
    qs = User.objects.filter(profile__company=company).select_related("profile").order_by("profile__full_name", "username")
    if search:
        qs = qs.filter(
            Q(profile__full_name__icontains=search)
            | Q(email__icontains=search)
            | Q(username__icontains=search)
            | Q(profile__role__iexact=search)
        )
    return qs


@transaction.atomic
def create_user(company, *, email, password, full_name="", role=UserProfile.USER, phone="", actor) -> User:
    actor_profile = _actor_profile(actor)
    role = role or UserProfile.USER
    _check_role_grant(actor_profile, role)
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError({"email": "Email is required."})
    if User.objects.filter(Q(username__iexact=email) | Q(email__iexact=email)).exists():
        raise ValidationError({"email": "An account with this email already exists."})
    if not password or len(password) < 8:
        raise ValidationError({"password": "Password must be at least 8 characters."})

    user = User.objects.create_user(username=email, email=email, password=password)
    profile = user.profile
    profile.company = company
    profile.role = role
    profile.full_name = full_name
    profile.phone = phone
    profile.save()
    audit.log_action(AuditLog.CREATE, "profiles", profile.pk, user=actor, company=company,
                     new={"email": email, "full_name": full_name, "role": role})
    logger.info("User %s created in %s by %s", email, company, actor)
    return user


@transaction.atomic
def update_user(user: User, *, actor, full_name=None, role=None, phone=None) -> User:
    actor_profile = _actor_profile(actor)
    _check_same_company(actor_profile, user)
    profile = user.profile
    before = {"full_name": profile.full_name, "role": profile.role, "phone": profile.phone}
    if role is not None and role != profile.role:
        _check_role_grant(actor_profile, role)
        if profile.role == UserProfile.SUPER_ADMIN and not actor_profile.is_super_admin:
            raise ValidationError({"role": "Only a super admin can change a super admin."})
        if user.pk == actor.pk and not UserProfile(role=role).is_admin:
            raise ValidationError({"role": "You cannot remove your own admin role."})
        profile.role = role
    if full_name is not None:
        profile.full_name = full_name
    if phone is not None:
        profile.phone = phone
    profile.save()
    audit.log_action(AuditLog.UPDATE, "profiles", profile.pk, user=actor, company=profile.company,
                     previous=before,
                     new={"full_name": profile.full_name, "role": profile.role, "phone": profile.phone})
    return user


@transaction.atomic
def set_active(user: User, active: bool, *, actor) -> User:
    """Deactivate (or reactivate) a login. Users are never deleted."""
    actor_profile = _actor_profile(actor)
    _check_same_company(actor_profile, user)
    if user.pk == actor.pk and not active:
        raise ValidationError("You cannot deactivate your own account.")
    if user.is_active == active:
        return user
    user.is_active = active
    user.save(update_fields=["is_active"])
    audit.log_action(AuditLog.UPDATE, "auth_user", user.pk, user=actor, company=actor_profile.company,
                     previous={"is_active": not active}, new={"is_active": active})
    logger.info("User %s %s by %s", user.username, "activated" if active else "deactivated", actor)
    return user


def deactivate_user(user: User, *, actor) -> User:
    return set_active(user, False, actor=actor)
