import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _id():
    return ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"))


def _user_fk(related_name="+", null=True):
    return models.ForeignKey(
        blank=null,
        null=null,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


APPROVAL_STATUS = [
    ("pending_approval", "Pending approval"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                _id(),
                ("name", models.CharField(max_length=255, unique=True)),
                ("abbreviation", models.CharField(blank=True, max_length=20)),
                ("address", models.TextField(blank=True)),
                ("contact_email", models.EmailField(blank=True, max_length=254)),
                ("contact_phone", models.CharField(blank=True, max_length=30)),
                ("logo", models.ImageField(blank=True, null=True, upload_to="company_logos/")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "companies",
                "ordering": ["name"],
                "verbose_name_plural": "companies",
            },
        ),
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                _id(),
                ("role", models.CharField(
                    choices=[("user", "User"), ("admin", "Admin"), ("super_admin", "Super Admin")],
                    default="user",
                    max_length=20,
                )),
                ("full_name", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=30)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="profiles", to="aquaculture.company",
                )),
                ("user", models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE, related_name="profile",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={"db_table": "profiles"},
        ),
        migrations.CreateModel(
            name="CompanyRegistration",
            fields=[
                _id(),
                ("company_name", models.CharField(max_length=255)),
                ("abbreviation", models.CharField(blank=True, max_length=20)),
                ("address", models.TextField(blank=True)),
                ("contact_email", models.EmailField(max_length=254)),
                ("contact_phone", models.CharField(blank=True, max_length=30)),
                ("admin_name", models.CharField(max_length=255)),
                ("admin_email", models.EmailField(max_length=254)),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                    default="pending",
                    max_length=10,
                )),
                ("submitted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_feedback", models.TextField(blank=True)),
                ("company", models.OneToOneField(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="registration", to="aquaculture.company",
                )),
                ("reviewed_by", _user_fk()),
                ("user", _user_fk("company_registrations")),
            ],
            options={"db_table": "company_registrations", "ordering": ["-submitted_at"]},
        ),
        migrations.CreateModel(
            name="Cage",
            fields=[
                _id(),
                ("name", models.CharField(max_length=100)),
                ("location", models.CharField(blank=True, max_length=255)),
                ("size", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("capacity", models.PositiveIntegerField(blank=True, null=True)),
                ("dimensions", models.CharField(blank=True, max_length=100)),
                ("material", models.CharField(blank=True, max_length=100)),
                ("installation_date", models.DateField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[
                        ("empty", "Empty"),
                        ("active", "Active"),
                        ("harvesting", "Harvesting"),
                        ("harvested", "Harvested"),
                        ("maintenance", "Maintenance"),
                        ("fallow", "Fallow"),
                    ],
                    default="empty",
                    max_length=20,
                )),
                ("notes", models.TextField(blank=True)),
                ("stocking_date", models.DateField(blank=True, null=True)),
                ("initial_count", models.PositiveIntegerField(blank=True, null=True)),
                ("current_count", models.PositiveIntegerField(blank=True, null=True)),
                ("initial_weight", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("current_weight", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("initial_abw", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("growth_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("mortality_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("last_maintenance_date", models.DateField(blank=True, null=True)),
                ("next_maintenance_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="cages", to="aquaculture.company",
                )),
                ("created_by", _user_fk()),
            ],
            options={"db_table": "cages", "ordering": ["name"]},
        ),
        migrations.AddConstraint(
            model_name="cage",
            constraint=models.UniqueConstraint(fields=("company", "name"), name="uniq_cage_name_per_company"),
        ),
        migrations.CreateModel(
            name="Stocking",
            fields=[
                _id(),
                ("status", models.CharField(choices=APPROVAL_STATUS, default="pending_approval", max_length=20)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("batch_number", models.CharField(max_length=50)),
                ("stocking_date", models.DateField()),
                ("fish_count", models.PositiveIntegerField()),
                ("initial_abw", models.DecimalField(decimal_places=2, max_digits=10)),
                ("initial_biomass", models.DecimalField(decimal_places=3, max_digits=12)),
                ("source_location", models.CharField(blank=True, max_length=255)),
                ("source_cage", models.CharField(blank=True, max_length=100)),
                ("transfer_supervisor", models.CharField(blank=True, max_length=255)),
                ("sampling_supervisor", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("approved_by", _user_fk()),
                ("cage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="stockings", to="aquaculture.cage",
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="stockings",
                    to="aquaculture.company",
                )),
                ("created_by", _user_fk()),
            ],
            options={"db_table": "stocking_history", "ordering": ["-stocking_date", "-created_at"]},
        ),
        migrations.CreateModel(
            name="TopUp",
            fields=[
                _id(),
                ("status", models.CharField(choices=APPROVAL_STATUS, default="pending_approval", max_length=20)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("topup_date", models.DateField()),
                ("fish_count", models.PositiveIntegerField()),
                ("abw", models.DecimalField(decimal_places=2, max_digits=10)),
                ("biomass", models.DecimalField(decimal_places=3, max_digits=12)),
                ("source_location", models.CharField(blank=True, max_length=255)),
                ("transfer_supervisor", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("approved_by", _user_fk()),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="topups", to="aquaculture.company",
                )),
                ("created_by", _user_fk()),
                ("stocking", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="topups",
                    to="aquaculture.stocking",
                )),
            ],
            options={"db_table": "topup_history", "ordering": ["-topup_date", "-created_at"]},
        ),
        migrations.CreateModel(
            name="DailyRecord",
            fields=[
                _id(),
                ("date", models.DateField()),
                ("feed_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("feed_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("feed_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("mortality", models.PositiveIntegerField(default=0)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("cage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="daily_records",
                    to="aquaculture.cage",
                )),
                ("created_by", _user_fk()),
            ],
            options={"db_table": "daily_records", "ordering": ["-date"]},
        ),
        migrations.AddConstraint(
            model_name="dailyrecord",
            constraint=models.UniqueConstraint(fields=("cage", "date"), name="uniq_daily_record_per_cage_day"),
        ),
        migrations.CreateModel(
            name="BiweeklyRecord",
            fields=[
                _id(),
                ("date", models.DateField()),
                ("batch_code", models.CharField(blank=True, max_length=30)),
                ("average_body_weight", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_fish_count", models.PositiveIntegerField(default=0)),
                ("total_weight", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("estimated_biomass", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("cage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="biweekly_records",
                    to="aquaculture.cage",
                )),
                ("created_by", _user_fk()),
                ("stocking", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="biweekly_records", to="aquaculture.stocking",
                )),
            ],
            options={"db_table": "biweekly_records", "ordering": ["-date", "-created_at"]},
        ),
        migrations.CreateModel(
            name="BiweeklySampling",
            fields=[
                _id(),
                ("sampling_number", models.PositiveIntegerField()),
                ("fish_count", models.PositiveIntegerField()),
                ("total_weight", models.DecimalField(decimal_places=2, max_digits=12)),
                ("average_body_weight", models.DecimalField(decimal_places=2, max_digits=10)),
                ("record", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="samplings",
                    to="aquaculture.biweeklyrecord",
                )),
            ],
            options={"db_table": "biweekly_sampling", "ordering": ["sampling_number"]},
        ),
        migrations.CreateModel(
            name="HarvestRecord",
            fields=[
                _id(),
                ("harvest_date", models.DateField()),
                ("total_weight", models.DecimalField(decimal_places=2, max_digits=12)),
                ("average_body_weight", models.DecimalField(decimal_places=2, max_digits=10)),
                ("estimated_count", models.PositiveIntegerField()),
                ("fcr", models.DecimalField(decimal_places=2, max_digits=6)),
                ("size_breakdown", models.JSONField(blank=True, default=list)),
                ("crate_size", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("cage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="harvest_records",
                    to="aquaculture.cage",
                )),
                ("created_by", _user_fk()),
                ("stocking", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="harvests", to="aquaculture.stocking",
                )),
            ],
            options={"db_table": "harvest_records", "ordering": ["-harvest_date"]},
        ),
        migrations.CreateModel(
            name="HarvestSampling",
            fields=[
                _id(),
                ("crate_size", models.PositiveSmallIntegerField(
                    choices=[(50, "50 kg crate"), (25, "25 kg crate")], default=50,
                )),
                ("size", models.CharField(
                    choices=[
                        ("S3", "800g above"),
                        ("S2", "700g-800g"),
                        ("S1", "600g-700g"),
                        ("Reg", "500g-600g"),
                        ("Eco", "400g-500g"),
                        ("SS", "300g-400g"),
                        ("SB", "200g-300g"),
                        ("Rej", "less than 200g"),
                    ],
                    max_length=5,
                )),
                ("size_range", models.CharField(blank=True, max_length=30)),
                ("quantity", models.PositiveIntegerField()),
                ("abw", models.DecimalField(decimal_places=2, max_digits=10)),
                ("harvest", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="samplings",
                    to="aquaculture.harvestrecord",
                )),
            ],
            options={"db_table": "harvest_sampling"},
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                _id(),
                ("username", models.CharField(blank=True, max_length=150)),
                ("action_type", models.CharField(
                    choices=[
                        ("create", "Create"),
                        ("update", "Update"),
                        ("delete", "Delete"),
                        ("approve", "Approve"),
                        ("reject", "Reject"),
                        ("login", "Login"),
                        ("logout", "Logout"),
                        ("login_failed", "Login failed"),
                    ],
                    max_length=20,
                )),
                ("table_name", models.CharField(blank=True, max_length=64)),
                ("record_id", models.CharField(blank=True, max_length=64)),
                ("previous_values", models.JSONField(blank=True, null=True)),
                ("new_values", models.JSONField(blank=True, null=True)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("company", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="audit_logs", to="aquaculture.company",
                )),
                ("user", _user_fk("audit_logs")),
            ],
            options={"db_table": "audit_logs", "ordering": ["-timestamp"]},
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                _id(),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField(blank=True)),
                ("type", models.CharField(
                    choices=[("info", "Info"), ("success", "Success"), ("warning", "Warning"), ("error", "Error")],
                    default="info",
                    max_length=10,
                )),
                ("link", models.CharField(blank=True, max_length=255)),
                ("read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="notifications",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={"db_table": "notifications", "ordering": ["-created_at"]},
        ),
    ]
