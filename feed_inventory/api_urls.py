from django.urls import path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register("suppliers", views.FeedSupplierViewSet)
router.register("types", views.FeedTypeViewSet)
router.register("purchases", views.FeedPurchaseViewSet)
router.register("transactions", views.FeedTransactionViewSet)

urlpatterns = router.urls + [
    path("usage-stats/", views.usage_stats, name="feed-usage-stats"),
    path("cost-analysis/", views.cost_analysis, name="feed-cost-analysis"),
    path("last-used/<int:cage_id>/", views.last_used, name="feed-last-used"),
]
