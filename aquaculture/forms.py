from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone

from feed_inventory.models import FeedType

from .models import Cage, Company, HarvestSampling, Stocking, UserProfile


class DateInput(forms.DateInput):
    input_type = "date"


class CageForm(forms.ModelForm):
    class Meta:
        model = Cage
        fields = [
            "name", "location", "size", "capacity", "dimensions", "material", "installation_date",
            "status", "last_maintenance_date", "next_maintenance_date", "notes",
        ]
        labels = {
            "size": "Size (m³)",
            "capacity": "Capacity (fish)",
        }
        widgets = {
            "installation_date": DateInput(),
            "last_maintenance_date": DateInput(),
            "next_maintenance_date": DateInput(),
            "notes": forms.Textarea(attrs={"rows": 3}),
        }


class StockingForm(forms.Form):
    """Stocking a new batch; only empty, fallow or harvested cages are offered."""
    cage = forms.ModelChoiceField(queryset=Cage.objects.none())
    stocking_date = forms.DateField(widget=DateInput(), initial=timezone.localdate)
    fish_count = forms.IntegerField(min_value=1, label="Number of fish")
    initial_abw = forms.DecimalField(min_value=0.01, decimal_places=2, label="Initial ABW (g)")
    batch_number = forms.CharField(required=False, help_text="Leave blank to generate (cage/nYY).")
    source_location = forms.CharField(required=False)
    source_cage = forms.CharField(required=False)
    transfer_supervisor = forms.CharField(required=False)
    sampling_supervisor = forms.CharField(required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 3}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["cage"].queryset = Cage.objects.filter(
            company=company, status__in=Cage.STOCKABLE_STATUSES
        ).order_by("name")


class TopUpForm(forms.Form):
    stocking = forms.ModelChoiceField(queryset=Stocking.objects.none(), label="Batch")
    topup_date = forms.DateField(widget=DateInput(), initial=timezone.localdate)
    fish_count = forms.IntegerField(min_value=1, label="Number of fish")
    abw = forms.DecimalField(min_value=0.01, decimal_places=2, label="ABW (g)")
    source_location = forms.CharField(required=False)
    transfer_supervisor = forms.CharField(required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 3}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["stocking"].queryset = Stocking.objects.filter(
            company=company,
            status=Stocking.STATUS_APPROVED,
            deleted_at__isnull=True,
            cage__status=Cage.ACTIVE,
        ).select_related("cage")


class DailyRecordForm(forms.Form):
    cage = forms.ModelChoiceField(queryset=Cage.objects.none())
    date = forms.DateField(widget=DateInput(), initial=timezone.localdate)
    feed_type = forms.ModelChoiceField(queryset=FeedType.objects.none())
    feed_amount = forms.DecimalField(min_value=0.01, decimal_places=2, label="Feed amount (kg)")
    feed_price = forms.DecimalField(min_value=0.01, decimal_places=2, required=False, label="Feed price per kg")
    mortality = forms.IntegerField(min_value=0, initial=0)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["cage"].queryset = Cage.objects.filter(
            company=company, status__in=Cage.RECORDABLE_STATUSES
        ).order_by("name")
        self.fields["feed_type"].queryset = FeedType.objects.filter(company=company, is_active=True)


class BiweeklyRecordForm(forms.Form):
    cage = forms.ModelChoiceField(queryset=Cage.objects.none())
    date = forms.DateField(widget=DateInput(), initial=timezone.localdate)
    batch_code = forms.CharField(required=False, help_text="Leave blank to generate.")
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["cage"].queryset = Cage.objects.filter(
            company=company, status__in=Cage.RECORDABLE_STATUSES
        ).order_by("name")


class SamplingRowForm(forms.Form):
    fish_count = forms.IntegerField(min_value=0, required=False)
    total_weight = forms.DecimalField(min_value=0, decimal_places=2, required=False, label="Total weight (g)")


SamplingFormSet = forms.formset_factory(SamplingRowForm, extra=5)


class HarvestForm(forms.Form):
    cage = forms.ModelChoiceField(queryset=Cage.objects.none())
    harvest_date = forms.DateField(widget=DateInput(), initial=timezone.localdate)
    total_weight = forms.DecimalField(min_value=0.01, decimal_places=2, label="Total weight (kg)")
    average_body_weight = forms.DecimalField(min_value=0.01, decimal_places=2, label="ABW (g)")
    estimated_count = forms.IntegerField(min_value=1)
    fcr = forms.DecimalField(min_value=0.01, decimal_places=2, required=False, label="FCR",
                             help_text="Leave blank to compute from feed records.")
    size_breakdown = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={"rows": 3}),
        help_text="One size per line: range, percentage (e.g. 500g-600g, 40)",
    )
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["cage"].queryset = Cage.objects.filter(
            company=company, status__in=Cage.RECORDABLE_STATUSES
        ).order_by("name")

    def clean_size_breakdown(self):
        rows = []
        for line in (self.cleaned_data.get("size_breakdown") or "").splitlines():
            if not line.strip():
                continue
            size_range, sep, pct = line.rpartition(",")
            if not sep:
                raise ValidationError(f"'{line}' should look like 'range, percentage'.")
            rows.append({"range": size_range.strip(), "percentage": pct.strip()})
        return rows


class HarvestSamplingForm(forms.Form):
    crate_size = forms.TypedChoiceField(choices=HarvestSampling.CRATE_CHOICES, coerce=int,
                                        initial=HarvestSampling.CRATE_50)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for code, size_range in HarvestSampling.SIZE_CATEGORIES:
            self.fields[f"{code}_quantity"] = forms.IntegerField(
                min_value=0, required=False, label=f"{code} ({size_range}) crates"
            )
            self.fields[f"{code}_abw"] = forms.DecimalField(
                min_value=0, decimal_places=2, required=False, label=f"{code} ABW (g)"
            )

    def samples(self):
        return [
            {
                "size": code,
                "quantity": self.cleaned_data.get(f"{code}_quantity"),
                "abw": self.cleaned_data.get(f"{code}_abw"),
            }
            for code, _ in HarvestSampling.SIZE_CATEGORIES
        ]


class RejectForm(forms.Form):
    reason = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), label="Reason")


class CompanyRegistrationForm(forms.Form):
    company_name = forms.CharField(max_length=255)
    abbreviation = forms.CharField(max_length=20, required=False)
    address = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))
    contact_email = forms.EmailField(required=False)
    contact_phone = forms.CharField(max_length=30, required=False)
    admin_name = forms.CharField(max_length=255, label="Your name")
    admin_email = forms.EmailField(label="Your email")
    admin_password = forms.CharField(widget=forms.PasswordInput, min_length=8, label="Password")
    confirm_password = forms.CharField(widget=forms.PasswordInput, label="Confirm password")

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("admin_password") != cleaned.get("confirm_password"):
            self.add_error("confirm_password", "Passwords do not match.")
        return cleaned


class CompanyForm(forms.ModelForm):
    class Meta:
        model = Company
        fields = ["name", "abbreviation", "address", "contact_email", "contact_phone"]
        widgets = {"address": forms.Textarea(attrs={"rows": 2})}


class LogoForm(forms.Form):
    logo = forms.ImageField()


class UserCreateForm(forms.Form):
    full_name = forms.CharField(max_length=255)
    email = forms.EmailField()
    phone = forms.CharField(max_length=30, required=False)
    role = forms.ChoiceField(choices=UserProfile.ROLE_CHOICES, initial=UserProfile.USER)
    password = forms.CharField(widget=forms.PasswordInput, min_length=8)


class UserUpdateForm(forms.Form):
    full_name = forms.CharField(max_length=255)
    phone = forms.CharField(max_length=30, required=False)
    role = forms.ChoiceField(choices=UserProfile.ROLE_CHOICES)


class DailyUploadForm(forms.Form):
    file = forms.FileField(help_text="CSV or XLSX with columns: cage, date, feed_amount, feed_type, "
                                     "feed_price, mortality, notes")
    dry_run = forms.BooleanField(required=False, label="Validate only")

    def clean_file(self):
        upload = self.cleaned_data["file"]
        if not upload.name.lower().endswith((".csv", ".xlsx", ".xlsm")):
            raise ValidationError("Upload a .csv or .xlsx file.")
        return upload


class ExportForm(forms.Form):
    KIND_CHOICES = [("daily", "Daily records"), ("biweekly", "Biweekly records"), ("harvest", "Harvest records")]
    kind = forms.ChoiceField(choices=KIND_CHOICES)
    cage = forms.ModelChoiceField(queryset=Cage.objects.none(), required=False, empty_label="All cages")
    start = forms.DateField(required=False, widget=DateInput())
    end = forms.DateField(required=False, widget=DateInput())

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["cage"].queryset = Cage.objects.filter(company=company).order_by("name")
