import logging

from django.contrib import messages
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from aquaculture.models import Cage, UserProfile
from aquaculture.permissions import AdminWriteOrReadOnly, HasCompany, IsCompanyAdmin
from aquaculture.views import company_of, company_required, form_errors, role_required

from . import stock
from .forms import FeedPurchaseForm, FeedSupplierForm, FeedTypeForm, StockAdjustmentForm
from .models import FeedInventoryTransaction, FeedPurchase, FeedSupplier, FeedType
from .serializers import (
    FeedPurchaseSerializer,
    FeedSupplierSerializer,
    FeedTransactionSerializer,
    FeedTypeSerializer,
    StockAdjustmentSerializer,
)

logger = logging.getLogger(__name__)


# ----- Pages -----
@company_required
def stock_levels(request):
    company = company_of(request)
    range_key = request.GET.get("range", stock.DEFAULT_RANGE)
    if range_key not in stock.RANGE_DAYS:
        range_key = stock.DEFAULT_RANGE
    return render(request, "feed_inventory/stock_levels.html", {
        "feed_types": FeedType.objects.filter(company=company).select_related("supplier"),
        "low_stock": stock.low_stock_alerts(company),
        "usage": stock.usage_stats(company, range_key),
        "range_key": range_key,
        "ranges": list(stock.RANGE_DAYS),
        "recent_transactions": FeedInventoryTransaction.objects.filter(company=company)
        .select_related("feed_type", "cage")[:20],
    })


@company_required
@role_required(UserProfile.ADMIN)
def feed_type_form(request, pk=None):
    company = company_of(request)
    instance = get_object_or_404(FeedType, pk=pk, company=company) if pk else None
    form = FeedTypeForm(request.POST or None, instance=instance, company=company)
    if request.method == "POST" and form.is_valid():
        feed_type = form.save(commit=False)
        feed_type.company = company
        try:
            with transaction.atomic():
                feed_type.save()
        except IntegrityError:
            form.add_error("name", "A feed type with this name already exists.")
        else:
            messages.success(request, f"Feed type {feed_type.name} saved.")
            return redirect("feed_inventory:stock_levels")
    return render(request, "feed_inventory/feed_type_form.html", {"form": form, "feed_type": instance})


@company_required
@role_required(UserProfile.ADMIN)
def adjust_stock(request, pk):
    feed_type = get_object_or_404(FeedType, pk=pk, company=company_of(request))
    form = StockAdjustmentForm(request.POST or None, initial={"new_stock": feed_type.current_stock})
    if request.method == "POST" and form.is_valid():
        stock.adjust_stock(feed_type, user=request.user, **form.cleaned_data)
        messages.success(request, f"Stock for {feed_type.name} set to {form.cleaned_data['new_stock']} kg.")
        return redirect("feed_inventory:stock_levels")
    return render(request, "feed_inventory/adjust_stock.html", {"form": form, "feed_type": feed_type})


@company_required
def supplier_list(request):
    return render(request, "feed_inventory/supplier_list.html", {
        "suppliers": FeedSupplier.objects.filter(company=company_of(request)),
    })


@company_required
@role_required(UserProfile.ADMIN)
def supplier_form(request, pk=None):
    company = company_of(request)
    instance = get_object_or_404(FeedSupplier, pk=pk, company=company) if pk else None
    form = FeedSupplierForm(request.POST or None, instance=instance)
    if request.method == "POST" and form.is_valid():
        supplier = form.save(commit=False)
        supplier.company = company
        try:
            with transaction.atomic():
                supplier.save()
        except IntegrityError:
            form.add_error("name", "A supplier with this name already exists.")
        else:
            messages.success(request, f"Supplier {supplier.name} saved.")
            return redirect("feed_inventory:supplier_list")
    return render(request, "feed_inventory/supplier_form.html", {"form": form, "supplier": instance})


@company_required
def purchase_list(request):
    company = company_of(request)
    form = FeedPurchaseForm(request.POST or None, company=company)
    if request.method == "POST":
        profile = request.user.profile
        if not profile.is_admin:
            messages.error(request, "Only admins can record purchases.")
            return redirect("feed_inventory:purchase_list")
        if form.is_valid():
            data = dict(form.cleaned_data)
            feed_type = data.pop("feed_type")
            try:
                stock.record_purchase(feed_type, user=request.user, **data)
            except ValidationError as exc:
                form_errors(form, exc)
            else:
                messages.success(request, f"Purchase of {data['quantity']} kg {feed_type.name} recorded.")
                return redirect("feed_inventory:purchase_list")
    return render(request, "feed_inventory/purchase_list.html", {
        "form": form,
        "purchases": stock.purchases_in_range(company)[:100],
    })


@company_required
@role_required(UserProfile.ADMIN)
@require_POST
def purchase_delete(request, pk):
    purchase = get_object_or_404(FeedPurchase, pk=pk, company=company_of(request))
    stock.delete_purchase(purchase, user=request.user)
    messages.success(request, "Purchase deleted and stock adjusted.")
    return redirect("feed_inventory:purchase_list")


# ----- JSON API -----
class CompanyOwnedViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAuthenticated, HasCompany, AdminWriteOrReadOnly]

    def get_queryset(self):
        return super().get_queryset().filter(company=company_of(self.request))

    def perform_create(self, serializer):
        try:
            with transaction.atomic():
                serializer.save(company=company_of(self.request))
        except IntegrityError:
            raise ValidationError({"name": "This name is already in use."})

    def perform_update(self, serializer):
        try:
            with transaction.atomic():
                serializer.save()
        except IntegrityError:
            raise ValidationError({"name": "This name is already in use."})


class FeedSupplierViewSet(CompanyOwnedViewSet):
    queryset = FeedSupplier.objects.all()
    serializer_class = FeedSupplierSerializer

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=["is_active"])


class FeedTypeViewSet(CompanyOwnedViewSet):
    queryset = FeedType.objects.select_related("supplier")
    serializer_class = FeedTypeSerializer

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        return Response(self.get_serializer(stock.low_stock_alerts(company_of(request)), many=True).data)

    @action(detail=True, methods=["post"])
    def adjust(self, request, pk=None):
        body = StockAdjustmentSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        txn = stock.adjust_stock(self.get_object(), user=request.user, **body.validated_data)
        return Response(FeedTransactionSerializer(txn).data)


class FeedPurchaseViewSet(mixins.CreateModelMixin, mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = FeedPurchase.objects.select_related("feed_type", "supplier")
    serializer_class = FeedPurchaseSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany, AdminWriteOrReadOnly]

    def get_queryset(self):
        params = self.request.query_params
        return stock.purchases_in_range(company_of(self.request), start=params.get("start"), end=params.get("end"))

    def perform_destroy(self, instance):
        stock.delete_purchase(instance, user=self.request.user)


class FeedTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = FeedInventoryTransaction.objects.select_related("feed_type", "cage")
    serializer_class = FeedTransactionSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany]

    def get_queryset(self):
        qs = super().get_queryset().filter(company=company_of(self.request))
        params = self.request.query_params
        if params.get("feed_type"):
            qs = qs.filter(feed_type_id=params["feed_type"])
        if params.get("type"):
            qs = qs.filter(transaction_type=params["type"])
        return qs


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany])
def usage_stats(request):
    return Response(stock.usage_stats(company_of(request), request.query_params.get("range", stock.DEFAULT_RANGE)))


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
def cost_analysis(request):
    return Response(stock.cost_analysis(company_of(request), request.query_params.get("range", stock.DEFAULT_RANGE)))


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany])
def last_used(request, cage_id):
    cage = get_object_or_404(Cage, pk=cage_id, company=company_of(request))
    feed_type = stock.last_used_feed_type(cage)
    if feed_type is None:
        return Response({"feed_type": None}, status=status.HTTP_200_OK)
    return Response({"feed_type": FeedTypeSerializer(feed_type).data})
