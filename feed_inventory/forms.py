from django import forms

from aquaculture.forms import DateInput

from .models import FeedSupplier, FeedType


class FeedSupplierForm(forms.ModelForm):
    class Meta:
        model = FeedSupplier
        fields = ["name", "contact_person", "phone", "email", "address", "is_active"]
        widgets = {"address": forms.Textarea(attrs={"rows": 2})}


class FeedTypeForm(forms.ModelForm):
    class Meta:
        model = FeedType
        fields = ["name", "supplier", "protein_content", "pellet_size", "price_per_kg", "minimum_stock", "is_active"]
        labels = {
            "protein_content": "Protein (%)",
            "price_per_kg": "Price per kg",
            "minimum_stock": "Minimum stock (kg)",
        }

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["supplier"].queryset = FeedSupplier.objects.filter(company=company, is_active=True)


class FeedPurchaseForm(forms.Form):
    feed_type = forms.ModelChoiceField(queryset=FeedType.objects.none())
    supplier = forms.ModelChoiceField(queryset=FeedSupplier.objects.none(), required=False)
    purchase_date = forms.DateField(widget=DateInput(), required=False)
    quantity = forms.DecimalField(min_value=0.01, decimal_places=2, label="Quantity (kg)")
    unit_price = forms.DecimalField(min_value=0, decimal_places=2, required=False,
                                    help_text="Defaults to the feed type's price.")
    invoice_number = forms.CharField(max_length=100, required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))

    def __init__(self, *args, company=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["feed_type"].queryset = FeedType.objects.filter(company=company, is_active=True)
        self.fields["supplier"].queryset = FeedSupplier.objects.filter(company=company, is_active=True)


class StockAdjustmentForm(forms.Form):
    new_stock = forms.DecimalField(min_value=0, decimal_places=2, label="Counted stock (kg)")
    notes = forms.CharField(max_length=255, required=False)
