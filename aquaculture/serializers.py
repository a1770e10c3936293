from django.contrib.auth.models import User
from rest_framework import serializers

from feed_inventory.models import FeedType

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
from .services import cages as cage_service
from .services import companies as company_service
from .services import harvest as harvest_service
from .services import records as record_service
from .services import stocking as stocking_service
from .services import users as user_service


def _request_user(serializer):
    request = serializer.context.get("request")
    return getattr(request, "user", None)


def _request_company(serializer):
    user = _request_user(serializer)
    profile = getattr(user, "profile", None)
    return getattr(profile, "company", None)


class CompanyScopedPK(serializers.PrimaryKeyRelatedField):
    """PK field restricted to rows of the requesting user's company."""

    company_lookup = "company"

    def get_queryset(self):
        company = _request_company(self)
        return self.queryset.filter(**{self.company_lookup: company})


class CageScopedPK(CompanyScopedPK):
    def __init__(self, **kwargs):
        kwargs.setdefault("queryset", Cage.objects.all())
        super().__init__(**kwargs)


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ["id", "name", "abbreviation", "address", "contact_email", "contact_phone", "logo",
                  "is_active", "created_at"]
        read_only_fields = ["logo", "is_active", "created_at"]

    def update(self, instance, validated_data):
        return company_service.update_company(instance, validated_data, _request_user(self))


class CompanyRegistrationSerializer(serializers.ModelSerializer):
    admin_password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = CompanyRegistration
        fields = [
            "id", "company_name", "abbreviation", "address", "contact_email", "contact_phone",
            "admin_name", "admin_email", "admin_password", "status", "submitted_at",
            "reviewed_at", "rejection_feedback", "company",
        ]
        read_only_fields = ["status", "submitted_at", "reviewed_at", "rejection_feedback", "company"]
        extra_kwargs = {"contact_email": {"required": False}}

    def create(self, validated_data):
        return company_service.submit_registration(**validated_data)


class ProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source="user.email", read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    is_active = serializers.BooleanField(source="user.is_active", read_only=True)
    company = CompanySerializer(read_only=True)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = ["id", "username", "email", "full_name", "phone", "role", "is_active", "company", "permissions"]

    def get_permissions(self, obj):
        return obj.permissions


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source="profile.full_name", required=False, allow_blank=True)
    role = serializers.ChoiceField(source="profile.role", choices=UserProfile.ROLE_CHOICES, required=False)
    phone = serializers.CharField(source="profile.phone", required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, required=False, min_length=8)

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role", "phone", "is_active", "last_login", "date_joined", "password"]
        read_only_fields = ["is_active", "last_login", "date_joined"]

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "This field is required."})
        if self.instance is None and not attrs.get("email"):
            raise serializers.ValidationError({"email": "This field is required."})
        return attrs

    def create(self, validated_data):
        profile = validated_data.pop("profile", {})
        return user_service.create_user(
            _request_company(self),
            email=validated_data["email"],
            password=validated_data["password"],
            full_name=profile.get("full_name", ""),
            role=profile.get("role", UserProfile.USER),
            phone=profile.get("phone", ""),
            actor=_request_user(self),
        )

    def update(self, instance, validated_data):
        profile = validated_data.pop("profile", {})
        return user_service.update_user(
            instance,
            actor=_request_user(self),
            full_name=profile.get("full_name"),
            role=profile.get("role"),
            phone=profile.get("phone"),
        )


class CageSerializer(serializers.ModelSerializer):
    doc = serializers.SerializerMethodField()

    class Meta:
        model = Cage
        fields = [
            "id", "name", "location", "size", "capacity", "dimensions", "material", "installation_date",
            "status", "notes", "stocking_date", "initial_count", "current_count", "initial_weight",
            "current_weight", "initial_abw", "growth_rate", "mortality_rate", "last_maintenance_date",
            "next_maintenance_date", "doc", "created_at", "updated_at",
        ]
        read_only_fields = [
            "stocking_date", "initial_count", "current_count", "initial_weight", "current_weight",
            "initial_abw", "growth_rate", "mortality_rate", "created_at", "updated_at",
        ]

    def get_doc(self, obj):
        return obj.days_of_culture()

    def create(self, validated_data):
        return cage_service.create_cage(_request_company(self), validated_data, _request_user(self))

    def update(self, instance, validated_data):
        return cage_service.update_cage(instance, validated_data, _request_user(self))


class TopUpSerializer(serializers.ModelSerializer):
    cage_name = serializers.CharField(source="stocking.cage.name", read_only=True)
    batch_number = serializers.CharField(source="stocking.batch_number", read_only=True)

    class Meta:
        model = TopUp
        fields = [
            "id", "stocking", "batch_number", "cage_name", "topup_date", "fish_count", "abw", "biomass",
            "source_location", "transfer_supervisor", "notes", "status", "rejection_reason",
            "created_by", "created_at", "approved_by", "approved_at",
        ]
        read_only_fields = [
            "stocking", "biomass", "status", "rejection_reason", "created_by", "created_at",
            "approved_by", "approved_at",
        ]

    def create(self, validated_data):
        return stocking_service.create_topup(
            self.context["stocking"], user=_request_user(self), **validated_data
        )


class StockingSerializer(serializers.ModelSerializer):
    cage = CageScopedPK()
    cage_name = serializers.CharField(source="cage.name", read_only=True)
    batch_number = serializers.CharField(required=False, allow_blank=True)
    topups = TopUpSerializer(many=True, read_only=True)

    class Meta:
        model = Stocking
        fields = [
            "id", "cage", "cage_name", "batch_number", "stocking_date", "fish_count", "initial_abw",
            "initial_biomass", "source_location", "source_cage", "transfer_supervisor",
            "sampling_supervisor", "notes", "status", "rejection_reason", "created_by", "created_at",
            "approved_by", "approved_at", "topups",
        ]
        read_only_fields = [
            "initial_biomass", "status", "rejection_reason", "created_by", "created_at",
            "approved_by", "approved_at",
        ]

    def create(self, validated_data):
        cage = validated_data.pop("cage")
        return stocking_service.create_stocking(cage, user=_request_user(self), **validated_data)


class DailyRecordSerializer(serializers.ModelSerializer):
    cage = CageScopedPK()
    cage_name = serializers.CharField(source="cage.name", read_only=True)
    feed_type = CompanyScopedPK(queryset=FeedType.objects.all(), required=False, allow_null=True)
    feed_type_name = serializers.CharField(source="feed_type.name", read_only=True, default=None)

    class Meta:
        model = DailyRecord
        fields = [
            "id", "cage", "cage_name", "date", "feed_amount", "feed_type", "feed_type_name", "feed_price",
            "feed_cost", "mortality", "notes", "created_by", "created_at",
        ]
        read_only_fields = ["created_by", "created_at"]
        # One-per-day is enforced with a friendlier message in the service layer
        validators = []

    def create(self, validated_data):
        cage = validated_data.pop("cage")
        return record_service.create_daily_record(cage, user=_request_user(self), **validated_data)


class BiweeklySamplingSerializer(serializers.ModelSerializer):
    class Meta:
        model = BiweeklySampling
        fields = ["sampling_number", "fish_count", "total_weight", "average_body_weight"]
        read_only_fields = ["sampling_number", "average_body_weight"]


class BiweeklyRecordSerializer(serializers.ModelSerializer):
    cage = CageScopedPK()
    cage_name = serializers.CharField(source="cage.name", read_only=True)
    samplings = BiweeklySamplingSerializer(many=True)
    batch_code = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = BiweeklyRecord
        fields = [
            "id", "cage", "cage_name", "stocking", "date", "batch_code", "average_body_weight",
            "total_fish_count", "total_weight", "estimated_biomass", "notes", "samplings",
            "created_by", "created_at",
        ]
        read_only_fields = [
            "stocking", "average_body_weight", "total_fish_count", "total_weight", "estimated_biomass",
            "created_by", "created_at",
        ]

    def create(self, validated_data):
        cage = validated_data.pop("cage")
        return record_service.create_biweekly_record(cage, user=_request_user(self), **validated_data)


class HarvestSamplingSerializer(serializers.ModelSerializer):
    class Meta:
        model = HarvestSampling
        fields = ["crate_size", "size", "size_range", "quantity", "abw"]


class SizeBreakdownSerializer(serializers.Serializer):
    range = serializers.CharField()
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2)


class HarvestRecordSerializer(serializers.ModelSerializer):
    cage = CageScopedPK()
    cage_name = serializers.CharField(source="cage.name", read_only=True)
    fcr = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, allow_null=True)
    size_breakdown = SizeBreakdownSerializer(many=True, required=False)
    samplings = HarvestSamplingSerializer(many=True, read_only=True)

    class Meta:
        model = HarvestRecord
        fields = [
            "id", "cage", "cage_name", "stocking", "harvest_date", "total_weight", "average_body_weight",
            "estimated_count", "fcr", "size_breakdown", "crate_size", "notes", "samplings",
            "created_by", "created_at",
        ]
        read_only_fields = ["stocking", "crate_size", "created_by", "created_at"]

    def create(self, validated_data):
        cage = validated_data.pop("cage")
        breakdown = [dict(row) for row in validated_data.pop("size_breakdown", [])]
        return harvest_service.record_harvest(
            cage, user=_request_user(self), size_breakdown=breakdown, **validated_data
        )


class HarvestSampleInputSerializer(serializers.Serializer):
    size = serializers.ChoiceField(choices=HarvestSampling.SIZE_CATEGORIES)
    quantity = serializers.IntegerField(required=False, allow_null=True)
    abw = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)


class HarvestSamplingInputSerializer(serializers.Serializer):
    crate_size = serializers.ChoiceField(choices=HarvestSampling.CRATE_CHOICES, default=HarvestSampling.CRATE_50)
    samples = HarvestSampleInputSerializer(many=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "title", "message", "type", "link", "read", "created_at"]
        read_only_fields = ["title", "message", "type", "link", "created_at"]


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            "id", "timestamp", "user", "username", "company", "action_type", "table_name", "record_id",
            "previous_values", "new_values",
        ]
