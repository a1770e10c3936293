from typing import Dict

from django.conf import settings
from django.contrib.auth.models import AnonymousUser

from .models import Notification
from .services.companies import pending_registrations


def header(request) -> Dict[str, object]:
    """Context for the global header: product, company, role and unread count."""
    base = {
        "product_name": settings.PRODUCT_NAME,
        "currency_symbol": settings.CURRENCY_SYMBOL,
    }
    user = getattr(request, "user", None)
    if not user or isinstance(user, AnonymousUser) or not user.is_authenticated:
        return base
    profile = getattr(user, "profile", None)
    base.update({
        "current_company": getattr(profile, "company", None),
        "user_role": getattr(profile, "role", None),
        "is_farm_admin": bool(profile and profile.is_admin),
        "is_super_admin": bool(profile and profile.is_super_admin),
        "unread_notifications": Notification.objects.filter(user=user, read=False).count(),
    })
    if profile and profile.is_super_admin:
        base["pending_registrations"] = pending_registrations().count()
    return base
