import decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("aquaculture", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="FeedSupplier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("contact_person", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=30)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("address", models.TextField(blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="feed_suppliers",
                    to="aquaculture.company",
                )),
            ],
            options={"db_table": "feed_suppliers", "ordering": ["name"]},
        ),
        migrations.AddConstraint(
            model_name="feedsupplier",
            constraint=models.UniqueConstraint(fields=("company", "name"), name="uniq_supplier_per_company"),
        ),
        migrations.CreateModel(
            name="FeedType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("protein_content", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("pellet_size", models.CharField(blank=True, max_length=30)),
                ("price_per_kg", models.DecimalField(decimal_places=2, default=decimal.Decimal("0"), max_digits=10)),
                ("current_stock", models.DecimalField(decimal_places=2, default=decimal.Decimal("0"), max_digits=12)),
                ("minimum_stock", models.DecimalField(decimal_places=2, default=decimal.Decimal("0"), max_digits=12)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="feed_types",
                    to="aquaculture.company",
                )),
                ("supplier", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="feed_types", to="feed_inventory.feedsupplier",
                )),
            ],
            options={"db_table": "feed_types", "ordering": ["name"]},
        ),
        migrations.AddConstraint(
            model_name="feedtype",
            constraint=models.UniqueConstraint(fields=("company", "name"), name="uniq_feed_type_per_company"),
        ),
        migrations.CreateModel(
            name="FeedPurchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("purchase_date", models.DateField(default=django.utils.timezone.localdate)),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_cost", models.DecimalField(decimal_places=2, editable=False, max_digits=14)),
                ("invoice_number", models.CharField(blank=True, max_length=100)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="feed_purchases",
                    to="aquaculture.company",
                )),
                ("created_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("feed_type", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="purchases",
                    to="feed_inventory.feedtype",
                )),
                ("supplier", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="purchases", to="feed_inventory.feedsupplier",
                )),
            ],
            options={"db_table": "feed_purchases", "ordering": ["-purchase_date", "-id"]},
        ),
        migrations.CreateModel(
            name="FeedInventoryTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(
                    choices=[("purchase", "Purchase"), ("usage", "Usage"), ("adjustment", "Adjustment")],
                    max_length=12,
                )),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=12)),
                ("unit_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("date", models.DateField(default=django.utils.timezone.localdate)),
                ("notes", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("cage", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="feed_transactions", to="aquaculture.cage",
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="feed_transactions",
                    to="aquaculture.company",
                )),
                ("created_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("daily_record", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="feed_transactions", to="aquaculture.dailyrecord",
                )),
                ("feed_type", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="transactions",
                    to="feed_inventory.feedtype",
                )),
                ("purchase", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="transactions", to="feed_inventory.feedpurchase",
                )),
            ],
            options={"db_table": "feed_inventory_transactions", "ordering": ["-date", "-id"]},
        ),
    ]
