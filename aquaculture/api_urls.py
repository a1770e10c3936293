from django.urls import path
from rest_framework.routers import DefaultRouter

from . import views, dashboard_views

router = DefaultRouter()
router.register("cages", views.CageViewSet)
router.register("stockings", views.StockingViewSet)
router.register("topups", views.TopUpViewSet)
router.register("daily-records", views.DailyRecordViewSet)
router.register("biweekly-records", views.BiweeklyRecordViewSet)
router.register("harvests", views.HarvestRecordViewSet)
router.register("users", views.UserViewSet, basename="user")
router.register("company-registrations", views.CompanyRegistrationViewSet)
router.register("notifications", views.NotificationViewSet, basename="notification")

urlpatterns = router.urls + [
    path("me/", views.me, name="api-me"),
    path("company/", views.company_detail, name="api-company"),
    path("company/logo/", views.company_logo, name="api-company-logo"),
    path("approvals/pending/", views.pending_approvals_api, name="api-pending-approvals"),
    path("audit-logs/", views.audit_logs_api, name="api-audit-logs"),
    path("audit-logs/stats/", views.audit_stats, name="api-audit-stats"),
    path("audit-logs/<str:table_name>/<str:record_id>/", views.audit_record_history, name="api-audit-history"),
    path("analytics/", dashboard_views.analytics, name="api-analytics"),
    path("dashboard/kpis/", dashboard_views.farm_kpis, name="api-kpis"),
]
