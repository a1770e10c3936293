from __future__ import annotations

import logging

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from aquaculture.exceptions import AlreadyProcessed
from aquaculture.models import AuditLog, Company, CompanyRegistration, UserProfile
from aquaculture.services import audit, notifications
from aquaculture.utils.jsonsafe import snapshot

logger = logging.getLogger(__name__)

COMPANY_FIELDS = ["name", "abbreviation", "address", "contact_email", "contact_phone"]
ALLOWED_LOGO_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"}
MAX_LOGO_BYTES = 2 * 1024 * 1024


def _email_taken(email):
    return User.objects.filter(username__iexact=email).exists() or User.objects.filter(email__iexact=email).exists()


@transaction.atomic
def submit_registration(
    *,
    company_name,
    admin_name,
    admin_email,
    admin_password,
    contact_email="",
    contact_phone="",
    abbreviation="",
    address="",
) -> CompanyRegistration:
    """Create the registrant's login and a pending registration.

    The login has no company until a super admin approves the request.
    """
    company_name = (company_name or "").strip()
    admin_email = (admin_email or "").strip().lower()
    errors = {}
    if not company_name:
        errors["company_name"] = "Company name is required."
    elif (
        Company.objects.filter(name__iexact=company_name).exists()
        or CompanyRegistration.objects.filter(
            company_name__iexact=company_name, status=CompanyRegistration.STATUS_PENDING
        ).exists()
    ):
        errors["company_name"] = "A company with this name is already registered."
    if not admin_email:
        errors["admin_email"] = "Admin email is required."
    elif _email_taken(admin_email):
        errors["admin_email"] = "An account with this email already exists."
    if not admin_password or len(admin_password) < 8:
        errors["admin_password"] = "Password must be at least 8 characters."
    if not (admin_name or "").strip():
        errors["admin_name"] = "Admin name is required."
    if errors:
        raise ValidationError(errors)

    user = User.objects.create_user(username=admin_email, email=admin_email, password=admin_password)
    profile = user.profile
    profile.full_name = admin_name.strip()
    profile.role = UserProfile.USER
    profile.save(update_fields=["full_name", "role"])

    registration = CompanyRegistration.objects.create(
        company_name=company_name,
        abbreviation=abbreviation,
        address=address,
        contact_email=contact_email or admin_email,
        contact_phone=contact_phone,
        admin_name=admin_name.strip(),
        admin_email=admin_email,
        user=user,
    )
    audit.log_action(AuditLog.CREATE, "company_registrations", registration.pk, user=user,
                     new=snapshot(registration))
    for su in User.objects.filter(is_active=True, profile__role=UserProfile.SUPER_ADMIN):
        notifications.notify(su, "New company registration", f"{company_name} is waiting for review.")
    logger.info("Company registration submitted: %s (%s)", company_name, admin_email)
    return registration


def pending_registrations():
    return CompanyRegistration.objects.filter(status=CompanyRegistration.STATUS_PENDING).order_by("-submitted_at")


def registration_for_user(user):
    return CompanyRegistration.objects.filter(user=user).order_by("-submitted_at").first()


def _require_super_admin(actor):
    profile = getattr(actor, "profile", None)
    if not profile or not profile.is_super_admin:
        raise ValidationError("Only a super admin can review company registrations.")


@transaction.atomic
def approve_registration(registration: CompanyRegistration, actor) -> Company:
    _require_super_admin(actor)
    registration = CompanyRegistration.objects.select_for_update().get(pk=registration.pk)
    if registration.status != CompanyRegistration.STATUS_PENDING:
        raise AlreadyProcessed("This registration was already reviewed.")
    if Company.objects.filter(name__iexact=registration.company_name).exists():
        raise ValidationError("A company with this name already exists.")

    company = Company.objects.create(
        name=registration.company_name,
        abbreviation=registration.abbreviation,
        address=registration.address,
        contact_email=registration.contact_email,
        contact_phone=registration.contact_phone,
    )
    registration.status = CompanyRegistration.STATUS_APPROVED
    registration.reviewed_by = actor
    registration.reviewed_at = timezone.now()
    registration.company = company
    registration.save(update_fields=["status", "reviewed_by", "reviewed_at", "company"])

    if registration.user is not None:
        profile = registration.user.profile
        profile.company = company
        profile.role = UserProfile.ADMIN
        profile.save(update_fields=["company", "role"])

    audit.log_action(AuditLog.APPROVE, "company_registrations", registration.pk, user=actor,
                     company=company, new=snapshot(registration))
    notifications.notify(registration.user, "Company approved", f"{company.name} is ready to use.")
    notifications.send_email(
        "Your company registration was approved",
        [registration.admin_email],
        "registration_approved",
        {"registration": registration, "company": company},
    )
    logger.info("Company registration %s approved by %s", registration.pk, actor)
    return company


@transaction.atomic
def reject_registration(registration: CompanyRegistration, actor, feedback) -> CompanyRegistration:
    _require_super_admin(actor)
    feedback = (feedback or "").strip()
    if not feedback:
        raise ValidationError({"feedback": "Feedback is required to reject a registration."})
    registration = CompanyRegistration.objects.select_for_update().get(pk=registration.pk)
    if registration.status != CompanyRegistration.STATUS_PENDING:
        raise AlreadyProcessed("This registration was already reviewed.")

    registration.status = CompanyRegistration.STATUS_REJECTED
    registration.reviewed_by = actor
    registration.reviewed_at = timezone.now()
    registration.rejection_feedback = feedback
    registration.save(update_fields=["status", "reviewed_by", "reviewed_at", "rejection_feedback"])

    audit.log_action(AuditLog.REJECT, "company_registrations", registration.pk, user=actor,
                     new=snapshot(registration))
    notifications.send_email(
        "Your company registration was not approved",
        [registration.admin_email],
        "registration_rejected",
        {"registration": registration},
    )
    logger.info("Company registration %s rejected by %s", registration.pk, actor)
    return registration


# ----- company details -----
def get_company_details(user=None, company_id=None):
    if company_id is not None:
        return Company.objects.filter(pk=company_id).first()
    profile = getattr(user, "profile", None)
    return getattr(profile, "company", None)


def update_company(company: Company, data, actor) -> Company:
    before = snapshot(company)
    for field in COMPANY_FIELDS:
        if field in data:
            setattr(company, field, data[field])
    company.full_clean()
    company.save()
    audit.log_action(AuditLog.UPDATE, "companies", company.pk, user=actor, company=company,
                     previous=before, new=snapshot(company))
    return company


def upload_logo(company: Company, upload, actor) -> Company:
    content_type = getattr(upload, "content_type", None)
    if content_type and content_type not in ALLOWED_LOGO_TYPES:
        raise ValidationError({"logo": "Upload a JPG, PNG, GIF, WEBP or SVG image."})
    if upload.size > MAX_LOGO_BYTES:
        raise ValidationError({"logo": "Logo must be 2 MB or smaller."})
    if company.logo:
        company.logo.delete(save=False)
    company.logo.save(upload.name, upload, save=True)
    audit.log_action(AuditLog.UPDATE, "companies", company.pk, user=actor, company=company,
                     new={"logo": company.logo.name})
    return company
