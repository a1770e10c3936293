"""JSON endpoints behind the dashboard and analytics pages."""

from django.contrib.auth.decorators import login_required
from django.core.cache import cache
from django.http import JsonResponse

from .models import UserProfile
from .services import audit, metrics
from .utils.jsonsafe import json_safe

KPI_CACHE_SECONDS = 60


def member_required(view):
    @login_required
    def _wrapped(request, *args, **kwargs):
        profile = getattr(request.user, "profile", None)
        if not profile or not profile.company_id:
            return JsonResponse({"detail": "Forbidden"}, status=403)
        return view(request, *args, **kwargs)

    return _wrapped


def admin_required(view):
    @login_required
    def _wrapped(request, *args, **kwargs):
        profile = getattr(request.user, "profile", None)
        if not profile or not profile.company_id or not profile.has_role(UserProfile.ADMIN):
            return JsonResponse({"detail": "Forbidden"}, status=403)
        return view(request, *args, **kwargs)

    return _wrapped


@member_required
def farm_kpis(request):
    company = request.user.profile.company
    key = f"farm-kpis:{company.pk}"
    data = cache.get(key)
    if not data:
        data = json_safe(metrics.dashboard_kpis(company))
        cache.set(key, data, KPI_CACHE_SECONDS)
    return JsonResponse(data)


@member_required
def analytics(request):
    company = request.user.profile.company
    kind = request.GET.get("type", "summary")
    cage_id = request.GET.get("cage_id") or None
    if kind == "summary":
        data = metrics.summary(company)
    elif kind == "growth":
        data = metrics.growth_series(company, cage_id=cage_id)
    elif kind == "feed":
        try:
            data = metrics.feed_series(company, period=request.GET.get("period", "weekly"), cage_id=cage_id)
        except ValueError as exc:
            return JsonResponse({"detail": str(exc)}, status=400)
    elif kind == "biomass":
        data = metrics.biomass_series(company)
    else:
        return JsonResponse({"detail": f"Unknown analytics type '{kind}'."}, status=400)
    return JsonResponse({"type": kind, "data": json_safe(data)})


@admin_required
def farm_activity(request):
    company = request.user.profile.company
    return JsonResponse({
        "action_types": audit.action_type_stats(company),
        "timeline": audit.activity_timeline(company),
        "users": audit.user_activity(company),
        "recent": [
            {
                "timestamp": row.timestamp.isoformat(),
                "username": row.username,
                "action_type": row.action_type,
                "table_name": row.table_name,
                "record_id": row.record_id,
            }
            for row in audit.recent_activity(company)
        ],
    })
