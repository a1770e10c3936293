import csv
import logging
from functools import wraps

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.decorators import login_required
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.http import Http404, HttpResponse, HttpResponseForbidden
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST
from django.views.generic import ListView
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from feed_inventory.stock import last_used_feed_type

from .exceptions import AlreadyProcessed
from .forms import (
    BiweeklyRecordForm,
    CageForm,
    CompanyForm,
    CompanyRegistrationForm,
    DailyRecordForm,
    DailyUploadForm,
    ExportForm,
    HarvestForm,
    HarvestSamplingForm,
    LogoForm,
    RejectForm,
    SamplingFormSet,
    StockingForm,
    TopUpForm,
    UserCreateForm,
    UserUpdateForm,
)
from .models import (
    AuditLog,
    BiweeklyRecord,
    Cage,
    Company,
    CompanyRegistration,
    DailyRecord,
    HarvestRecord,
    Notification,
    Stocking,
    TopUp,
    UserProfile,
)
from .permissions import (
    AdminWriteOrReadOnly,
    HasCompany,
    IsCompanyAdmin,
    IsSuperAdmin,
    group_permissions_by_category,
)
from .serializers import (
    AuditLogSerializer,
    BiweeklyRecordSerializer,
    CageSerializer,
    CompanyRegistrationSerializer,
    CompanySerializer,
    DailyRecordSerializer,
    HarvestRecordSerializer,
    HarvestSamplingInputSerializer,
    HarvestSamplingSerializer,
    NotificationSerializer,
    ProfileSerializer,
    RejectSerializer,
    StockingSerializer,
    TopUpSerializer,
    UserSerializer,
)
from .services import audit as audit_service
from .services import cages as cage_service
from .services import companies as company_service
from .services import harvest as harvest_service
from .services import metrics as metrics_service
from .services import notifications as notification_service
from .services import records as record_service
from .services import stocking as stocking_service
from .services import users as user_service
from .utils.jsonsafe import json_safe

logger = logging.getLogger(__name__)


# ----- Role helpers -----
def _profile(request):
    return getattr(request.user, "profile", None)


def company_of(request):
    return getattr(_profile(request), "company", None)


def _error_text(exc):
    return " ".join(exc.messages)


def form_errors(form, exc):
    """Attach a service ValidationError to the form, per field where possible."""
    if not hasattr(exc, "error_dict"):
        form.add_error(None, _error_text(exc))
        return
    for field, errs in exc.message_dict.items():
        for err in errs:
            form.add_error(field if field in form.fields else None, err)


def company_required(view_func):
    """Login required, and the user's company must be approved."""

    @wraps(view_func)
    @login_required
    def _wrapped(request, *args, **kwargs):
        if company_of(request) is None:
            return redirect("pending_approval")
        return view_func(request, *args, **kwargs)

    return _wrapped


def role_required(role):
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            profile = _profile(request)
            if not profile or not profile.has_role(role):
                return HttpResponseForbidden("You do not have permission to perform this action.")
            return view_func(request, *args, **kwargs)

        return _wrapped

    return decorator


class RoleRequiredMixin(UserPassesTestMixin):
    required_role = UserProfile.ADMIN

    def test_func(self):
        profile = getattr(self.request.user, "profile", None)
        return bool(profile and profile.has_role(self.required_role))

    def handle_no_permission(self):
        if not self.request.user.is_authenticated:
            return super().handle_no_permission()
        messages.error(self.request, "You do not have permission to access this page.")
        return redirect("dashboard")


# ----- Authentication Views -----
def login_view(request):
    if request.user.is_authenticated:
        return redirect("dashboard")

    if request.method == "POST":
        uname = (request.POST.get("username") or "").strip()
        pwd = request.POST.get("password")
        user = authenticate(request, username=uname, password=pwd)
        if user is None and "@" in uname:
            match = User.objects.filter(email__iexact=uname).first()
            if match:
                user = authenticate(request, username=match.username, password=pwd)
        if user:
            login(request, user)
            next_url = request.GET.get("next")
            if next_url and url_has_allowed_host_and_scheme(
                next_url, allowed_hosts={request.get_host()}, require_https=request.is_secure()
            ):
                return redirect(next_url)
            return redirect("dashboard")
        messages.error(request, "Invalid credentials")

    return render(request, "aquaculture/login.html")


def logout_view(request):
    logout(request)
    return redirect("login")


def register_company(request):
    if request.method == "POST":
        form = CompanyRegistrationForm(request.POST)
        if form.is_valid():
            data = dict(form.cleaned_data)
            data.pop("confirm_password")
            try:
                company_service.submit_registration(**data)
            except ValidationError as exc:
                form_errors(form, exc)
            else:
                messages.success(request, "Registration submitted. You can log in once it is approved.")
                return redirect("login")
    else:
        form = CompanyRegistrationForm()
    return render(request, "aquaculture/register_company.html", {"form": form})


@login_required
def pending_approval(request):
    if company_of(request) is not None:
        return redirect("dashboard")
    registration = company_service.registration_for_user(request.user)
    return render(request, "aquaculture/pending_approval.html", {"registration": registration})


# ----- Dashboard -----
@company_required
def dashboard(request):
    company = company_of(request)
    kpis = metrics_service.dashboard_kpis(company)
    context = {
        "cards": kpis["cards"],
        "cage_metrics": kpis["cages"],
        "summary": metrics_service.summary(company),
        "pending_count": len(stocking_service.pending_approvals(company)["all"]),
        "recent_records": DailyRecord.objects.filter(cage__company=company)
        .select_related("cage")
        .order_by("-date", "-id")[:10],
    }
    return render(request, "aquaculture/dashboard.html", context)


# ----- Cages -----
@company_required
def cage_list(request):
    status_filter = request.GET.get("status", "all")
    page = cage_service.list_cages(
        company_of(request),
        status=status_filter,
        search=request.GET.get("q"),
        page=request.GET.get("page") or 1,
    )
    return render(request, "aquaculture/cage_list.html", {
        "page": page,
        "status_filter": status_filter,
        "status_choices": Cage.STATUS_CHOICES,
    })


@company_required
def cage_detail(request, pk):
    cage = get_object_or_404(Cage, pk=pk, company=company_of(request))
    return render(request, "aquaculture/cage_detail.html", {
        "cage": cage,
        "metrics": metrics_service.cage_metrics(cage),
        "weekly_feed": metrics_service.weekly_feed(cage),
        "daily_records": record_service.daily_records_for_cage(cage, limit=30),
        "biweekly_records": record_service.biweekly_records_for_cage(cage, limit=10),
        "stockings": cage.stockings.filter(deleted_at__isnull=True).order_by("-stocking_date"),
        "harvest": harvest_service.harvest_for_cage(cage),
    })


@company_required
@role_required(UserProfile.ADMIN)
def cage_create(request):
    form = CageForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            cage = cage_service.create_cage(company_of(request), form.cleaned_data, request.user)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, f"Cage {cage.name} created.")
            return redirect("cage_detail", pk=cage.pk)
    return render(request, "aquaculture/cage_form.html", {"form": form})


@company_required
@role_required(UserProfile.ADMIN)
def cage_update(request, pk):
    cage = get_object_or_404(Cage, pk=pk, company=company_of(request))
    form = CageForm(request.POST or None, instance=cage)
    if request.method == "POST" and form.is_valid():
        try:
            cage_service.update_cage(Cage.objects.get(pk=cage.pk), form.cleaned_data, request.user)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, "Cage updated.")
            return redirect("cage_detail", pk=cage.pk)
    return render(request, "aquaculture/cage_form.html", {"form": form, "cage": cage})


@company_required
@role_required(UserProfile.ADMIN)
@require_POST
def cage_delete(request, pk):
    cage = get_object_or_404(Cage, pk=pk, company=company_of(request))
    try:
        cage_service.delete_cage(cage, request.user)
    except ValidationError as exc:
        messages.error(request, _error_text(exc))
        return redirect("cage_detail", pk=pk)
    messages.success(request, "Cage deleted.")
    return redirect("cage_list")


# ----- Stocking & approvals -----
@company_required
def stocking_create(request):
    company = company_of(request)
    form = StockingForm(request.POST or None, company=company)
    if request.method == "POST" and form.is_valid():
        data = dict(form.cleaned_data)
        cage = data.pop("cage")
        try:
            stocking = stocking_service.create_stocking(cage, user=request.user, **data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, f"Stocking {stocking.batch_number} submitted for approval.")
            return redirect("cage_detail", pk=cage.pk)
    return render(request, "aquaculture/stocking_form.html", {"form": form})


@company_required
def topup_create(request):
    company = company_of(request)
    form = TopUpForm(request.POST or None, company=company)
    if request.method == "POST" and form.is_valid():
        data = dict(form.cleaned_data)
        stocking = data.pop("stocking")
        try:
            stocking_service.create_topup(stocking, user=request.user, **data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, "Top-up submitted for approval.")
            return redirect("cage_detail", pk=stocking.cage_id)
    return render(request, "aquaculture/topup_form.html", {"form": form})


@company_required
@role_required(UserProfile.ADMIN)
def approvals(request):
    pending = stocking_service.pending_approvals(company_of(request))
    return render(request, "aquaculture/approvals.html", {
        "pending": pending["all"],
        "reject_form": RejectForm(),
    })


@company_required
@role_required(UserProfile.ADMIN)
@require_POST
def approval_decide(request, kind, pk, decision):
    company = company_of(request)
    try:
        if decision == "approve":
            stocking_service.approve_record(kind, pk, request.user, company=company)
            messages.success(request, f"{kind.capitalize()} approved.")
        else:
            stocking_service.reject_record(kind, pk, request.user, request.POST.get("reason"), company=company)
            messages.success(request, f"{kind.capitalize()} rejected.")
    except AlreadyProcessed as exc:
        messages.info(request, str(exc) or "Already processed.")
    except ValidationError as exc:
        messages.error(request, _error_text(exc))
    return redirect("approvals")


# ----- Production records -----
@company_required
def daily_entry(request):
    company = company_of(request)
    form = DailyRecordForm(request.POST or None, company=company)
    if request.method == "GET" and request.GET.get("cage"):
        cage = Cage.objects.filter(company=company, pk=request.GET["cage"]).first()
        if cage:
            form.initial.update({"cage": cage.pk, "feed_type": getattr(last_used_feed_type(cage), "pk", None)})
    if request.method == "POST" and form.is_valid():
        data = dict(form.cleaned_data)
        cage = data.pop("cage")
        try:
            record_service.create_daily_record(cage, user=request.user, **data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, f"Daily record saved for {cage.name}.")
            return redirect("cage_detail", pk=cage.pk)
    return render(request, "aquaculture/daily_form.html", {"form": form})


@company_required
@role_required(UserProfile.ADMIN)
def daily_upload(request):
    form = DailyUploadForm(request.POST or None, request.FILES or None)
    result = None
    if request.method == "POST" and form.is_valid():
        upload = form.cleaned_data["file"]
        try:
            rows = record_service.parse_daily_rows(upload, upload.name)
        except ValidationError as exc:
            form.add_error("file", _error_text(exc))
        else:
            result = record_service.import_daily_rows(
                rows, company_of(request), request.user, dry_run=form.cleaned_data["dry_run"]
            )
            verb = "would be created" if form.cleaned_data["dry_run"] else "created"
            messages.success(request, f"{result.created} record(s) {verb}; {len(result.errors)} error(s).")
    return render(request, "aquaculture/daily_upload.html", {"form": form, "result": result})


@company_required
def biweekly_entry(request):
    company = company_of(request)
    form = BiweeklyRecordForm(request.POST or None, company=company)
    formset = SamplingFormSet(request.POST or None, prefix="samples")
    if request.method == "POST" and form.is_valid() and formset.is_valid():
        data = dict(form.cleaned_data)
        cage = data.pop("cage")
        samplings = [f.cleaned_data for f in formset.forms if f.cleaned_data]
        try:
            record_service.create_biweekly_record(cage, samplings=samplings, user=request.user, **data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, f"Sampling saved for {cage.name}.")
            return redirect("cage_detail", pk=cage.pk)
    return render(request, "aquaculture/biweekly_form.html", {"form": form, "formset": formset})


@company_required
@role_required(UserProfile.ADMIN)
def harvest_entry(request):
    company = company_of(request)
    form = HarvestForm(request.POST or None, company=company)
    if request.method == "POST" and form.is_valid():
        data = dict(form.cleaned_data)
        cage = data.pop("cage")
        try:
            harvest = harvest_service.record_harvest(cage, user=request.user, **data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, f"Harvest recorded for {cage.name}.")
            return redirect("harvest_sampling", pk=harvest.pk)
    return render(request, "aquaculture/harvest_form.html", {"form": form})


@company_required
@role_required(UserProfile.ADMIN)
def harvest_sampling(request, pk):
    harvest = get_object_or_404(HarvestRecord, pk=pk, cage__company=company_of(request))
    form = HarvestSamplingForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            harvest_service.add_sampling_data(
                harvest, crate_size=form.cleaned_data["crate_size"], samples=form.samples(), user=request.user
            )
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, "Sampling data saved.")
            return redirect("cage_detail", pk=harvest.cage_id)
    return render(request, "aquaculture/harvest_sampling.html", {"form": form, "harvest": harvest})


@company_required
@role_required(UserProfile.ADMIN)
def export_records(request):
    company = company_of(request)
    form = ExportForm(request.GET or None, company=company)
    if request.GET and form.is_valid():
        kind = form.cleaned_data["kind"]
        response = HttpResponse(content_type="text/csv")
        stamp = timezone.localdate().strftime("%Y%m%d")
        response["Content-Disposition"] = f'attachment; filename="{kind}_records_{stamp}.csv"'
        writer = csv.writer(response)
        writer.writerow(record_service.EXPORT_COLUMNS[kind])
        for row in record_service.export_rows(
            kind, company, cage=form.cleaned_data["cage"], start=form.cleaned_data["start"],
            end=form.cleaned_data["end"],
        ):
            writer.writerow(row)
        return response
    return render(request, "aquaculture/export.html", {"form": form})


# ----- Users -----
@company_required
@role_required(UserProfile.ADMIN)
def user_list(request):
    users = user_service.users_for_company(company_of(request), search=request.GET.get("q"))
    return render(request, "aquaculture/user_list.html", {"users": users, "q": request.GET.get("q", "")})


@company_required
@role_required(UserProfile.ADMIN)
def user_create(request):
    form = UserCreateForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            user_service.create_user(company_of(request), actor=request.user, **form.cleaned_data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, "User created.")
            return redirect("user_list")
    return render(request, "aquaculture/user_form.html", {"form": form})


@company_required
@role_required(UserProfile.ADMIN)
def user_update(request, pk):
    target = get_object_or_404(User, pk=pk, profile__company=company_of(request))
    initial = {"full_name": target.profile.full_name, "phone": target.profile.phone, "role": target.profile.role}
    form = UserUpdateForm(request.POST or None, initial=initial)
    if request.method == "POST" and form.is_valid():
        try:
            user_service.update_user(target, actor=request.user, **form.cleaned_data)
        except ValidationError as exc:
            form_errors(form, exc)
        else:
            messages.success(request, "User updated.")
            return redirect("user_list")
    return render(request, "aquaculture/user_form.html", {"form": form, "target": target})


@company_required
@role_required(UserProfile.ADMIN)
@require_POST
def user_toggle_active(request, pk):
    target = get_object_or_404(User, pk=pk, profile__company=company_of(request))
    try:
        user_service.set_active(target, not target.is_active, actor=request.user)
        messages.success(request, f"{target.email or target.username} is now {'active' if target.is_active else 'inactive'}.")
    except ValidationError as exc:
        messages.error(request, _error_text(exc))
    return redirect("user_list")


# ----- Company -----
@company_required
@role_required(UserProfile.ADMIN)
def company_settings(request):
    company = company_of(request)
    form = CompanyForm(request.POST or None, instance=Company.objects.get(pk=company.pk), prefix="company")
    logo_form = LogoForm(prefix="logo")
    if request.method == "POST":
        if "logo-logo" in request.FILES:
            logo_form = LogoForm(request.POST, request.FILES, prefix="logo")
            if logo_form.is_valid():
                try:
                    company_service.upload_logo(company, logo_form.cleaned_data["logo"], request.user)
                except ValidationError as exc:
                    logo_form.add_error("logo", _error_text(exc))
                else:
                    messages.success(request, "Logo updated.")
                    return redirect("company_settings")
        elif form.is_valid():
            try:
                company_service.update_company(company, form.cleaned_data, request.user)
            except ValidationError as exc:
                form_errors(form, exc)
            else:
                messages.success(request, "Company details saved.")
                return redirect("company_settings")
    return render(request, "aquaculture/company_settings.html", {
        "form": form,
        "logo_form": logo_form,
        "company": company,
    })


@login_required
@role_required(UserProfile.SUPER_ADMIN)
def company_registrations(request):
    status_filter = request.GET.get("status", CompanyRegistration.STATUS_PENDING)
    regs = CompanyRegistration.objects.all()
    if status_filter != "all":
        regs = regs.filter(status=status_filter)
    return render(request, "aquaculture/company_registrations.html", {
        "registrations": regs.order_by("-submitted_at"),
        "status_filter": status_filter,
        "reject_form": RejectForm(),
    })


@login_required
@role_required(UserProfile.SUPER_ADMIN)
@require_POST
def company_registration_decide(request, pk, decision):
    registration = get_object_or_404(CompanyRegistration, pk=pk)
    try:
        if decision == "approve":
            company_service.approve_registration(registration, request.user)
            messages.success(request, f"{registration.company_name} approved.")
        else:
            company_service.reject_registration(registration, request.user, request.POST.get("reason"))
            messages.success(request, f"{registration.company_name} rejected.")
    except AlreadyProcessed as exc:
        messages.info(request, str(exc))
    except ValidationError as exc:
        messages.error(request, _error_text(exc))
    return redirect("company_registrations")


# ----- Notifications & audit -----
@login_required
def notifications(request):
    if request.method == "POST":
        if request.POST.get("action") == "clear":
            notification_service.delete_all(request.user)
        else:
            notification_service.mark_all_read(request.user)
        return redirect("notifications")
    return render(request, "aquaculture/notifications.html", {
        "notifications": notification_service.notifications_for(request.user),
    })


class AuditLogListView(LoginRequiredMixin, RoleRequiredMixin, ListView):
    template_name = "aquaculture/audit_logs.html"
    context_object_name = "logs"
    paginate_by = 50

    def get_queryset(self):
        company = company_of(self.request)
        qs = AuditLog.objects.select_related("user")
        if not self.request.user.profile.is_super_admin:
            qs = qs.filter(company=company)
        params = self.request.GET
        if params.get("action_type"):
            qs = qs.filter(action_type=params["action_type"])
        if params.get("table"):
            qs = qs.filter(table_name=params["table"])
        return qs.order_by("-timestamp")

    def get_context_data(self, **kwargs):
        ctx = super().get_context_data(**kwargs)
        company = company_of(self.request)
        ctx.update({
            "action_choices": AuditLog.ACTION_CHOICES,
            "stats": audit_service.action_type_stats(company),
            "timeline": audit_service.activity_timeline(company),
            "top_users": audit_service.user_activity(company),
        })
        return ctx


# ======================================================================
# JSON API
# ======================================================================
class CompanyMixin:
    """Scope querysets to the requesting user's company."""

    company_field = "company"
    permission_classes = [permissions.IsAuthenticated, HasCompany]

    def get_company(self):
        return company_of(self.request)

    def get_queryset(self):
        return super().get_queryset().filter(**{self.company_field: self.get_company()})


class CagePagination(PageNumberPagination):
    page_size_query_param = "page_size"
    max_page_size = 500

    def __init__(self):
        self.page_size = settings.CAGE_PAGE_SIZE

    def get_paginated_response(self, data):
        return Response({
            "count": self.page.paginator.count,
            "total_pages": self.page.paginator.num_pages,
            "next": self.get_next_link(),
            "previous": self.get_previous_link(),
            "results": data,
        })


class CageViewSet(CompanyMixin, viewsets.ModelViewSet):
    queryset = Cage.objects.all()
    serializer_class = CageSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany, AdminWriteOrReadOnly]
    pagination_class = CagePagination

    def get_queryset(self):
        qs = super().get_queryset().order_by("name")
        status_filter = self.request.query_params.get("status")
        if status_filter and status_filter != "all":
            qs = qs.filter(status=status_filter)
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(name__icontains=search)
        return qs

    def perform_destroy(self, instance):
        cage_service.delete_cage(instance, self.request.user)

    @action(detail=False, methods=["get"], url_path="by-name")
    def by_name(self, request):
        cage = cage_service.get_cage_by_name(self.get_company(), request.query_params.get("name"))
        if cage is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.get_serializer(cage).data)

    @action(detail=False, methods=["get"])
    def active(self, request):
        return Response(self.get_serializer(cage_service.active_cages(self.get_company()), many=True).data)

    @action(detail=False, methods=["get"])
    def available(self, request):
        qs = cage_service.available_for_stocking(self.get_company())
        return Response(self.get_serializer(qs, many=True).data)

    @action(detail=True, methods=["get"])
    def metrics(self, request, pk=None):
        cage = self.get_object()
        return Response({
            "metrics": metrics_service.cage_metrics(cage),
            "growth": metrics_service.calculate_growth_metrics(cage),
            "weekly_feed": metrics_service.weekly_feed(cage),
        })

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        cage = cage_service.update_status(self.get_object(), request.data.get("status"), request.user)
        return Response(self.get_serializer(cage).data)

    @action(detail=True, methods=["patch"], url_path="cage-metrics", permission_classes=[
        permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
    def update_metrics(self, request, pk=None):
        data = {k: v for k, v in request.data.items() if k in cage_service.METRIC_FIELDS}
        cage = cage_service.update_metrics(self.get_object(), data, request.user)
        return Response(self.get_serializer(cage).data)

    @action(detail=True, methods=["get"], url_path="last-feed-type")
    def last_feed_type(self, request, pk=None):
        ft = last_used_feed_type(self.get_object())
        return Response({"feed_type": ft.pk if ft else None, "name": ft.name if ft else None})


class StockingViewSet(CompanyMixin, mixins.CreateModelMixin, mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = Stocking.objects.filter(deleted_at__isnull=True).select_related("cage").prefetch_related("topups")
    serializer_class = StockingSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("cage_id"):
            qs = qs.filter(cage_id=params["cage_id"])
        return qs.order_by("-stocking_date", "-created_at")

    def get_permissions(self):
        if self.action in ("approve", "reject", "destroy"):
            return [permissions.IsAuthenticated(), HasCompany(), IsCompanyAdmin()]
        return super().get_permissions()

    def get_object(self):
        try:
            stocking = stocking_service.get_stocking(self.get_company(), self.kwargs["pk"])
        except (Stocking.DoesNotExist, ValueError):
            raise Http404
        self.check_object_permissions(self.request, stocking)
        return stocking

    def perform_destroy(self, instance):
        stocking_service.soft_delete_stocking(instance, self.request.user)

    @action(detail=False, methods=["get"])
    def active(self, request):
        qs = stocking_service.get_active_stockings(self.get_company())
        return Response(self.get_serializer(qs, many=True).data)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        record = stocking_service.approve_record(
            stocking_service.STOCKING, self.get_object().pk, request.user, company=self.get_company()
        )
        return Response(self.get_serializer(record).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        body = RejectSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        record = stocking_service.reject_record(
            stocking_service.STOCKING, self.get_object().pk, request.user, body.validated_data["reason"],
            company=self.get_company(),
        )
        return Response(self.get_serializer(record).data)

    @action(detail=True, methods=["get", "post"])
    def topups(self, request, pk=None):
        stocking = self.get_object()
        if request.method == "GET":
            return Response(TopUpSerializer(stocking.topups.all(), many=True).data)
        serializer = TopUpSerializer(data=request.data, context={"request": request, "stocking": stocking})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class TopUpViewSet(CompanyMixin, viewsets.ReadOnlyModelViewSet):
    queryset = TopUp.objects.select_related("stocking__cage")
    serializer_class = TopUpSerializer

    def get_permissions(self):
        if self.action in ("approve", "reject"):
            return [permissions.IsAuthenticated(), HasCompany(), IsCompanyAdmin()]
        return super().get_permissions()

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        record = stocking_service.approve_record(
            stocking_service.TOPUP, self.get_object().pk, request.user, company=self.get_company()
        )
        return Response(self.get_serializer(record).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        body = RejectSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        record = stocking_service.reject_record(
            stocking_service.TOPUP, self.get_object().pk, request.user, body.validated_data["reason"],
            company=self.get_company(),
        )
        return Response(self.get_serializer(record).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
def pending_approvals_api(request):
    pending = stocking_service.pending_approvals(company_of(request))
    return Response(json_safe(pending))


class DailyRecordViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = DailyRecord.objects.select_related("cage", "feed_type")
    serializer_class = DailyRecordSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany]
    parser_classes = [JSONParser, FormParser, MultiPartParser]

    def get_queryset(self):
        qs = super().get_queryset().filter(cage__company=company_of(self.request))
        cage_id = self.request.query_params.get("cage_id")
        if self.action == "list":
            if not cage_id:
                raise ValidationError({"cage_id": "cage_id is required."})
            return qs.filter(cage_id=cage_id).order_by("-date")[:100]
        return qs

    @action(detail=False, methods=["post"], url_path="import",
            permission_classes=[permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
    def import_rows(self, request):
        upload = request.FILES.get("file")
        if upload is None:
            return Response({"file": ["Upload a CSV or XLSX file."]}, status=status.HTTP_400_BAD_REQUEST)
        rows = record_service.parse_daily_rows(upload, upload.name)
        dry_run = str(request.data.get("dry_run", "")).lower() in ("1", "true", "yes")
        result = record_service.import_daily_rows(rows, company_of(request), request.user, dry_run=dry_run)
        return Response({"created": result.created, "errors": result.errors, "dry_run": dry_run})


class BiweeklyRecordViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = BiweeklyRecord.objects.select_related("cage").prefetch_related("samplings")
    serializer_class = BiweeklyRecordSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany]

    def get_queryset(self):
        qs = super().get_queryset().filter(cage__company=company_of(self.request))
        cage_id = self.request.query_params.get("cage_id")
        if cage_id:
            qs = qs.filter(cage_id=cage_id)
        return qs.order_by("-date", "-id")


class HarvestRecordViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = HarvestRecord.objects.select_related("cage").prefetch_related("samplings")
    serializer_class = HarvestRecordSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany, AdminWriteOrReadOnly]

    def get_queryset(self):
        qs = super().get_queryset().filter(cage__company=company_of(self.request))
        cage_id = self.request.query_params.get("cage_id")
        if cage_id:
            qs = qs.filter(cage_id=cage_id)
        return qs.order_by("-harvest_date")

    @action(detail=True, methods=["post"])
    def sampling(self, request, pk=None):
        harvest = self.get_object()
        body = HarvestSamplingInputSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        rows = harvest_service.add_sampling_data(
            harvest,
            crate_size=body.validated_data["crate_size"],
            samples=body.validated_data["samples"],
            user=request.user,
        )
        return Response(HarvestSamplingSerializer(rows, many=True).data, status=status.HTTP_201_CREATED)


class UserViewSet(mixins.CreateModelMixin, mixins.UpdateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated, HasCompany, IsCompanyAdmin]

    def get_queryset(self):
        return user_service.users_for_company(company_of(self.request), search=self.request.query_params.get("search"))

    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        user = user_service.deactivate_user(self.get_object(), actor=request.user)
        return Response(self.get_serializer(user).data)

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        user = user_service.set_active(self.get_object(), True, actor=request.user)
        return Response(self.get_serializer(user).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def me(request):
    profile = request.user.profile
    data = ProfileSerializer(profile).data
    data["permission_groups"] = group_permissions_by_category(profile.permissions)
    return Response(data)


@api_view(["GET", "PATCH"])
@permission_classes([permissions.IsAuthenticated, HasCompany])
def company_detail(request):
    company = company_service.get_company_details(request.user)
    if request.method == "GET":
        return Response(CompanySerializer(company).data)
    if not request.user.profile.is_admin:
        return Response({"detail": "Forbidden"}, status=status.HTTP_403_FORBIDDEN)
    serializer = CompanySerializer(company, data=request.data, partial=True, context={"request": request})
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(serializer.data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
def company_logo(request):
    upload = request.FILES.get("logo")
    if upload is None:
        return Response({"logo": ["No file was submitted."]}, status=status.HTTP_400_BAD_REQUEST)
    company = company_service.upload_logo(company_of(request), upload, request.user)
    return Response(CompanySerializer(company).data)


class CompanyRegistrationViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = CompanyRegistration.objects.all()
    serializer_class = CompanyRegistrationSerializer

    def get_permissions(self):
        if self.action == "create":
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated(), IsSuperAdmin()]

    def get_queryset(self):
        qs = super().get_queryset()
        status_filter = self.request.query_params.get("status", CompanyRegistration.STATUS_PENDING)
        if self.action == "list" and status_filter != "all":
            qs = qs.filter(status=status_filter)
        return qs.order_by("-submitted_at")

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        company_service.approve_registration(self.get_object(), request.user)
        return Response(self.get_serializer(CompanyRegistration.objects.get(pk=pk)).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        feedback = request.data.get("feedback") or request.data.get("reason")
        registration = company_service.reject_registration(self.get_object(), request.user, feedback)
        return Response(self.get_serializer(registration).data)


class NotificationViewSet(mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user).order_by("-created_at")

    def perform_destroy(self, instance):
        notification_service.delete_notification(self.request.user, instance.pk)

    def list(self, request, *args, **kwargs):
        limit = _int_param(request.query_params, "limit", 50)
        rows = notification_service.notifications_for(request.user, limit=limit)
        return Response(self.get_serializer(rows, many=True).data)

    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification_service.mark_read(request.user, self.get_object().pk)
        return Response({"unread": notification_service.unread_count(request.user)})

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        updated = notification_service.mark_all_read(request.user)
        return Response({"updated": updated, "unread": 0})

    @action(detail=False, methods=["post"])
    def clear(self, request):
        return Response({"deleted": notification_service.delete_all(request.user)})

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return Response({"unread": notification_service.unread_count(request.user)})


def _int_param(params, name, default):
    try:
        return int(params.get(name, default))
    except (TypeError, ValueError):
        return default


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, (HasCompany & IsCompanyAdmin) | IsSuperAdmin])
def audit_logs_api(request):
    params = request.query_params
    company = None if request.user.profile.is_super_admin and params.get("all") else company_of(request)
    user = None
    if params.get("user_id"):
        user = User.objects.filter(pk=params["user_id"]).first()
    rows, total = audit_service.audit_logs(
        company=company,
        user=user,
        action_type=params.get("action_type"),
        table_name=params.get("table_name"),
        record_id=params.get("record_id"),
        start=parse_date(params["start"]) if params.get("start") else None,
        end=parse_date(params["end"]) if params.get("end") else None,
        limit=min(_int_param(params, "limit", 50), 500),
        offset=_int_param(params, "offset", 0),
    )
    return Response({"count": total, "results": AuditLogSerializer(rows, many=True).data})


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
def audit_record_history(request, table_name, record_id):
    rows = audit_service.record_history(table_name, record_id, company=company_of(request))
    return Response(AuditLogSerializer(rows, many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasCompany, IsCompanyAdmin])
def audit_stats(request):
    company = company_of(request)
    return Response({
        "action_types": audit_service.action_type_stats(company, days=_int_param(request.query_params, "days", 30)),
        "recent": AuditLogSerializer(audit_service.recent_activity(company), many=True).data,
        "timeline": audit_service.activity_timeline(company, days=_int_param(request.query_params, "timeline_days", 14)),
        "users": audit_service.user_activity(company),
    })
