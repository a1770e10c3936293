import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from aquaculture.models import Cage, Company, UserProfile
from aquaculture.services import stocking as stocking_service
from feed_inventory.models import FeedType


def make_user(company, role=UserProfile.USER, email=None, password="pass12345"):
    email = email or f"u{uuid.uuid4().hex[:8]}@farm.test"
    user = User.objects.create_user(username=email, email=email, password=password)
    profile = user.profile
    profile.company = company
    profile.role = role
    profile.full_name = email.split("@")[0]
    profile.save()
    return user


def make_cage(company, name="C1", **kwargs):
    return Cage.objects.create(company=company, name=name, **kwargs)


def stock_cage(cage, admin, fish_count=1000, initial_abw="50", days_ago=28):
    """Stock and approve ``cage``; returns the approved stocking."""
    stocking = stocking_service.create_stocking(
        cage,
        stocking_date=timezone.localdate() - timedelta(days=days_ago),
        fish_count=fish_count,
        initial_abw=Decimal(initial_abw),
        user=admin,
    )
    return stocking_service.approve_record(stocking_service.STOCKING, stocking.pk, admin)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def company(db):
    return Company.objects.create(name="Lakeside Fish Ltd", abbreviation="LFL")


@pytest.fixture
def other_company(db):
    return Company.objects.create(name="Volta Cages")


@pytest.fixture
def admin(company):
    return make_user(company, UserProfile.ADMIN, email="admin@lakeside.test")


@pytest.fixture
def staff(company):
    return make_user(company, UserProfile.USER, email="staff@lakeside.test")


@pytest.fixture
def super_admin(db):
    return User.objects.create_superuser(username="root", email="root@farm.test", password="pass12345")


@pytest.fixture
def cage(company):
    return make_cage(company, "C1", capacity=5000)


@pytest.fixture
def stocked_cage(cage, admin):
    stock_cage(cage, admin)
    cage.refresh_from_db()
    return cage


@pytest.fixture
def feed_type(company):
    return FeedType.objects.create(
        company=company,
        name="Grower 4mm",
        price_per_kg=Decimal("12.50"),
        current_stock=Decimal("500"),
        minimum_stock=Decimal("100"),
    )


@pytest.fixture
def api_admin(admin):
    client = APIClient()
    client.force_authenticate(admin)
    return client


@pytest.fixture
def api_staff(staff):
    client = APIClient()
    client.force_authenticate(staff)
    return client
