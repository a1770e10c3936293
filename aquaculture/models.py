from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


#
# ----------------------------------------------------------------------
# Companies & accounts
# ----------------------------------------------------------------------
#
class Company(models.Model):
    """A farming company; every cage and record belongs to one."""
    name = models.CharField(max_length=255, unique=True)
    abbreviation = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=30, blank=True)
    logo = models.ImageField(upload_to="company_logos/", blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "companies"
        ordering = ["name"]
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    """Extend Django's User with a company and a role."""
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    ROLE_CHOICES = [
        (USER, "User"),
        (ADMIN, "Admin"),
        (SUPER_ADMIN, "Super Admin"),
    ]
    ROLE_RANK = {USER: 1, ADMIN: 2, SUPER_ADMIN: 3}

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    company = models.ForeignKey(
        Company, on_delete=models.SET_NULL, null=True, blank=True, related_name="profiles"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=USER)
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "profiles"

    def __str__(self):
        return f"{self.user.username} ({self.get_role_display()})"

    @property
    def display_name(self):
        return self.full_name or self.user.get_full_name() or self.user.username

    def has_role(self, role):
        """An admin satisfies every role except super_admin; super_admin satisfies all."""
        if self.role == self.SUPER_ADMIN:
            return True
        if role == self.SUPER_ADMIN:
            return False
        return self.ROLE_RANK.get(self.role, 0) >= self.ROLE_RANK.get(role, 0)

    @property
    def is_admin(self):
        return self.has_role(self.ADMIN)

    @property
    def is_super_admin(self):
        return self.role == self.SUPER_ADMIN

    @property
    def permissions(self):
        from .permissions import permissions_for_role

        return permissions_for_role(self.role)


class CompanyRegistration(models.Model):
    """Self-service company sign-up awaiting super admin review."""
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    company_name = models.CharField(max_length=255)
    abbreviation = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    contact_email = models.EmailField()
    contact_phone = models.CharField(max_length=30, blank=True)
    admin_name = models.CharField(max_length=255)
    admin_email = models.EmailField()
    user = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="company_registrations"
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    submitted_at = models.DateTimeField(default=timezone.now)
    reviewed_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_feedback = models.TextField(blank=True)
    company = models.OneToOneField(
        Company, on_delete=models.SET_NULL, null=True, blank=True, related_name="registration"
    )

    class Meta:
        db_table = "company_registrations"
        ordering = ["-submitted_at"]

    def __str__(self):
        return f"{self.company_name} ({self.get_status_display()})"


#
# ----------------------------------------------------------------------
# Cages
# ----------------------------------------------------------------------
#
class Cage(models.Model):
    """Physical containment unit holding one batch of fish at a time."""
    EMPTY = "empty"
    ACTIVE = "active"
    HARVESTING = "harvesting"
    HARVESTED = "harvested"
    MAINTENANCE = "maintenance"
    FALLOW = "fallow"
    STATUS_CHOICES = [
        (EMPTY, "Empty"),
        (ACTIVE, "Active"),
        (HARVESTING, "Harvesting"),
        (HARVESTED, "Harvested"),
        (MAINTENANCE, "Maintenance"),
        (FALLOW, "Fallow"),
    ]
    # Statuses from which a new stocking may start
    STOCKABLE_STATUSES = (EMPTY, FALLOW, HARVESTED)
    # Statuses that accept daily feeding/mortality records
    RECORDABLE_STATUSES = (ACTIVE, HARVESTING)

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="cages")
    name = models.CharField(max_length=100)
    location = models.CharField(max_length=255, blank=True)
    size = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)
    dimensions = models.CharField(max_length=100, blank=True)
    material = models.CharField(max_length=100, blank=True)
    installation_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=EMPTY)
    notes = models.TextField(blank=True)

    stocking_date = models.DateField(null=True, blank=True)
    initial_count = models.PositiveIntegerField(null=True, blank=True)
    current_count = models.PositiveIntegerField(null=True, blank=True)
    # Biomass in kg
    initial_weight = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    current_weight = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    initial_abw = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    growth_rate = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    mortality_rate = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)

    last_maintenance_date = models.DateField(null=True, blank=True)
    next_maintenance_date = models.DateField(null=True, blank=True)

    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "cages"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="uniq_cage_name_per_company"),
        ]

    def __str__(self):
        return self.name

    @property
    def is_available_for_stocking(self):
        return self.status in self.STOCKABLE_STATUSES

    def current_stocking(self):
        """Latest approved, non-deleted stocking for this cage."""
        return (
            self.stockings.filter(status=Stocking.STATUS_APPROVED, deleted_at__isnull=True)
            .order_by("-stocking_date", "-created_at")
            .first()
        )

    def days_of_culture(self, on=None):
        if not self.stocking_date:
            return None
        on = on or timezone.localdate()
        return max((on - self.stocking_date).days, 0)


#
# ----------------------------------------------------------------------
# Stocking & top-ups
# ----------------------------------------------------------------------
#
class ApprovalFields(models.Model):
    STATUS_PENDING = "pending_approval"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending approval"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(default=timezone.now)
    approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        abstract = True

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING


class Stocking(ApprovalFields):
    """Introduction of a batch of fish into a cage."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="stockings")
    cage = models.ForeignKey(Cage, on_delete=models.CASCADE, related_name="stockings")
    batch_number = models.CharField(max_length=50)
    stocking_date = models.DateField()
    fish_count = models.PositiveIntegerField()
    initial_abw = models.DecimalField(max_digits=10, decimal_places=2)
    initial_biomass = models.DecimalField(max_digits=12, decimal_places=3)
    source_location = models.CharField(max_length=255, blank=True)
    source_cage = models.CharField(max_length=100, blank=True)
    transfer_supervisor = models.CharField(max_length=255, blank=True)
    sampling_supervisor = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "stocking_history"
        ordering = ["-stocking_date", "-created_at"]

    def __str__(self):
        return f"{self.batch_number} ({self.cage})"


class TopUp(ApprovalFields):
    """Additional fish added to an already stocked cage."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="topups")
    stocking = models.ForeignKey(Stocking, on_delete=models.CASCADE, related_name="topups")
    topup_date = models.DateField()
    fish_count = models.PositiveIntegerField()
    abw = models.DecimalField(max_digits=10, decimal_places=2)
    biomass = models.DecimalField(max_digits=12, decimal_places=3)
    source_location = models.CharField(max_length=255, blank=True)
    transfer_supervisor = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "topup_history"
        ordering = ["-topup_date", "-created_at"]

    def __str__(self):
        return f"Top-up {self.fish_count} → {self.stocking.batch_number}"

    @property
    def cage(self):
        return self.stocking.cage


#
# ----------------------------------------------------------------------
# Production records
# ----------------------------------------------------------------------
#
class DailyRecord(models.Model):
    """Feeding and mortality log for one cage on one day."""
    cage = models.ForeignKey(Cage, on_delete=models.CASCADE, related_name="daily_records")
    date = models.DateField()
    feed_amount = models.DecimalField(max_digits=10, decimal_places=2)
    feed_type = models.ForeignKey(
        "feed_inventory.FeedType",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="daily_records",
    )
    feed_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    feed_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    mortality = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "daily_records"
        ordering = ["-date"]
        constraints = [
            models.UniqueConstraint(fields=["cage", "date"], name="uniq_daily_record_per_cage_day"),
        ]

    def __str__(self):
        return f"{self.cage} {self.date}"

    def clean(self):
        if self.feed_amount is not None and self.feed_amount <= 0:
            raise ValidationError({"feed_amount": "Feed amount must be greater than zero."})
        if self.feed_price is not None and self.feed_price < 0:
            raise ValidationError({"feed_price": "Feed price cannot be negative."})

    def save(self, *args, **kwargs):
        if self.feed_cost is None and self.feed_price is not None and self.feed_amount is not None:
            self.feed_cost = (Decimal(self.feed_amount) * Decimal(self.feed_price)).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)


class BiweeklyRecord(models.Model):
    """Growth sampling result for a cage."""
    cage = models.ForeignKey(Cage, on_delete=models.CASCADE, related_name="biweekly_records")
    stocking = models.ForeignKey(
        Stocking, on_delete=models.SET_NULL, null=True, blank=True, related_name="biweekly_records"
    )
    date = models.DateField()
    batch_code = models.CharField(max_length=30, blank=True)
    average_body_weight = models.DecimalField(max_digits=10, decimal_places=2)
    total_fish_count = models.PositiveIntegerField(default=0)
    total_weight = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    estimated_biomass = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "biweekly_records"
        ordering = ["-date", "-created_at"]

    def __str__(self):
        return f"{self.cage} {self.date} ABW {self.average_body_weight}g"


class BiweeklySampling(models.Model):
    record = models.ForeignKey(BiweeklyRecord, on_delete=models.CASCADE, related_name="samplings")
    sampling_number = models.PositiveIntegerField()
    fish_count = models.PositiveIntegerField()
    total_weight = models.DecimalField(max_digits=12, decimal_places=2)
    average_body_weight = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        db_table = "biweekly_sampling"
        ordering = ["sampling_number"]


class HarvestRecord(models.Model):
    """Final harvest of a stocking cycle."""
    cage = models.ForeignKey(Cage, on_delete=models.CASCADE, related_name="harvest_records")
    stocking = models.ForeignKey(
        Stocking, on_delete=models.SET_NULL, null=True, blank=True, related_name="harvests"
    )
    harvest_date = models.DateField()
    total_weight = models.DecimalField(max_digits=12, decimal_places=2)
    average_body_weight = models.DecimalField(max_digits=10, decimal_places=2)
    estimated_count = models.PositiveIntegerField()
    fcr = models.DecimalField(max_digits=6, decimal_places=2)
    size_breakdown = models.JSONField(default=list, blank=True)
    crate_size = models.PositiveSmallIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "harvest_records"
        ordering = ["-harvest_date"]

    def __str__(self):
        return f"Harvest {self.cage} {self.harvest_date}"


class HarvestSampling(models.Model):
    """Crate sampling per size grade taken during a harvest."""
    CRATE_50 = 50
    CRATE_25 = 25
    CRATE_CHOICES = [(CRATE_50, "50 kg crate"), (CRATE_25, "25 kg crate")]

    SIZE_CATEGORIES = [
        ("S3", "800g above"),
        ("S2", "700g-800g"),
        ("S1", "600g-700g"),
        ("Reg", "500g-600g"),
        ("Eco", "400g-500g"),
        ("SS", "300g-400g"),
        ("SB", "200g-300g"),
        ("Rej", "less than 200g"),
    ]

    harvest = models.ForeignKey(HarvestRecord, on_delete=models.CASCADE, related_name="samplings")
    crate_size = models.PositiveSmallIntegerField(choices=CRATE_CHOICES, default=CRATE_50)
    size = models.CharField(max_length=5, choices=SIZE_CATEGORIES)
    size_range = models.CharField(max_length=30, blank=True)
    quantity = models.PositiveIntegerField()
    abw = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        db_table = "harvest_sampling"


#
# ----------------------------------------------------------------------
# Audit & notifications
# ----------------------------------------------------------------------
#
class AuditLog(models.Model):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    LOGIN = "login"
    LOGOUT = "logout"
    LOGIN_FAILED = "login_failed"
    ACTION_CHOICES = [
        (CREATE, "Create"),
        (UPDATE, "Update"),
        (DELETE, "Delete"),
        (APPROVE, "Approve"),
        (REJECT, "Reject"),
        (LOGIN, "Login"),
        (LOGOUT, "Logout"),
        (LOGIN_FAILED, "Login failed"),
    ]

    company = models.ForeignKey(
        Company, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs"
    )
    user = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs"
    )
    username = models.CharField(max_length=150, blank=True)
    action_type = models.CharField(max_length=20, choices=ACTION_CHOICES)
    table_name = models.CharField(max_length=64, blank=True)
    record_id = models.CharField(max_length=64, blank=True)
    previous_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "audit_logs"
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.timestamp:%Y-%m-%d %H:%M} {self.action_type} {self.table_name}#{self.record_id}"


class Notification(models.Model):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    TYPE_CHOICES = [
        (INFO, "Info"),
        (SUCCESS, "Success"),
        (WARNING, "Warning"),
        (ERROR, "Error"),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="notifications")
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=INFO)
    link = models.CharField(max_length=255, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "notifications"
        ordering = ["-created_at"]

    def __str__(self):
        return self.title
