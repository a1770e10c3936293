from django.contrib import admin

from .models import (
    AuditLog,
    BiweeklyRecord,
    BiweeklySampling,
    Cage,
    Company,
    CompanyRegistration,
    DailyRecord,
    HarvestRecord,
    HarvestSampling,
    Notification,
    Stocking,
    TopUp,
    UserProfile,
)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "abbreviation", "contact_email", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "abbreviation")


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "full_name", "company", "role")
    list_filter = ("role", "company")
    search_fields = ("user__username", "user__email", "full_name")


@admin.register(CompanyRegistration)
class CompanyRegistrationAdmin(admin.ModelAdmin):
    list_display = ("company_name", "admin_email", "status", "submitted_at", "reviewed_at")
    list_filter = ("status",)
    search_fields = ("company_name", "admin_email")


@admin.register(Cage)
class CageAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "status", "stocking_date", "current_count", "current_weight")
    list_filter = ("company", "status")
    search_fields = ("name", "location")


class TopUpInline(admin.TabularInline):
    model = TopUp
    extra = 0
    fields = ("topup_date", "fish_count", "abw", "biomass", "status")


@admin.register(Stocking)
class StockingAdmin(admin.ModelAdmin):
    list_display = ("batch_number", "cage", "stocking_date", "fish_count", "initial_abw", "status", "deleted_at")
    list_filter = ("status", "company")
    search_fields = ("batch_number", "cage__name")
    inlines = [TopUpInline]


@admin.register(DailyRecord)
class DailyRecordAdmin(admin.ModelAdmin):
    list_display = ("date", "cage", "feed_amount", "feed_type", "feed_cost", "mortality")
    list_filter = ("cage__company", "cage")
    date_hierarchy = "date"


class BiweeklySamplingInline(admin.TabularInline):
    model = BiweeklySampling
    extra = 0


@admin.register(BiweeklyRecord)
class BiweeklyRecordAdmin(admin.ModelAdmin):
    list_display = ("date", "cage", "batch_code", "average_body_weight", "estimated_biomass")
    list_filter = ("cage__company",)
    inlines = [BiweeklySamplingInline]


class HarvestSamplingInline(admin.TabularInline):
    model = HarvestSampling
    extra = 0


@admin.register(HarvestRecord)
class HarvestRecordAdmin(admin.ModelAdmin):
    list_display = ("harvest_date", "cage", "total_weight", "average_body_weight", "estimated_count", "fcr")
    list_filter = ("cage__company",)
    inlines = [HarvestSamplingInline]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "username", "company", "action_type", "table_name", "record_id")
    list_filter = ("action_type", "table_name", "company")
    search_fields = ("username", "record_id")
    readonly_fields = [f.name for f in AuditLog._meta.fields]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("created_at", "user", "title", "type", "read")
    list_filter = ("type", "read")
