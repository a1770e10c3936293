import pytest
from django.contrib.auth.models import User
from django.core import mail
from django.core.exceptions import ValidationError
from django.test import Client
from django.urls import reverse
from rest_framework.test import APIClient

from aquaculture.exceptions import AlreadyProcessed
from aquaculture.models import Company, CompanyRegistration, Notification, UserProfile
from aquaculture.services import companies as company_service

pytestmark = pytest.mark.django_db


def _submit(**kwargs):
    data = {
        "company_name": "Tilapia Bay",
        "admin_name": "Ama Mensah",
        "admin_email": "Ama@TilapiaBay.test",
        "admin_password": "longenough1",
        "contact_phone": "+233200000000",
    }
    data.update(kwargs)
    return company_service.submit_registration(**data)


def test_submit_creates_pending_registration_and_login(super_admin):
    reg = _submit()

    assert reg.status == CompanyRegistration.STATUS_PENDING
    assert reg.admin_email == "ama@tilapiabay.test"
    assert reg.contact_email == "ama@tilapiabay.test"
    user = User.objects.get(username="ama@tilapiabay.test")
    assert user.check_password("longenough1")
    assert user.profile.company is None
    assert user.profile.full_name == "Ama Mensah"
    assert Notification.objects.filter(user=super_admin, title="New company registration").exists()


@pytest.mark.parametrize("kwargs, field", [
    ({"company_name": " "}, "company_name"),
    ({"admin_email": ""}, "admin_email"),
    ({"admin_password": "short"}, "admin_password"),
    ({"admin_name": ""}, "admin_name"),
])
def test_submit_validation(kwargs, field):
    with pytest.raises(ValidationError) as exc:
        _submit(**kwargs)
    assert field in exc.value.message_dict
    assert not User.objects.exists()


def test_duplicate_company_name_or_email(company, admin):
    with pytest.raises(ValidationError) as exc:
        _submit(company_name=company.name.upper())
    assert "company_name" in exc.value.message_dict
    with pytest.raises(ValidationError) as exc:
        _submit(admin_email=admin.email)
    assert "admin_email" in exc.value.message_dict


def test_pending_registration_blocks_same_name():
    _submit()
    with pytest.raises(ValidationError):
        _submit(admin_email="other@tilapiabay.test")


def test_approve_creates_company_and_promotes_admin(super_admin):
    reg = _submit()
    company = company_service.approve_registration(reg, super_admin)

    reg.refresh_from_db()
    assert reg.status == CompanyRegistration.STATUS_APPROVED
    assert reg.company == company
    assert reg.reviewed_by == super_admin
    profile = reg.user.profile
    profile.refresh_from_db()
    assert profile.company == company
    assert profile.role == UserProfile.ADMIN
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ["ama@tilapiabay.test"]
    assert "Tilapia Bay" in mail.outbox[0].body


def test_only_super_admin_reviews(admin):
    reg = _submit()
    with pytest.raises(ValidationError):
        company_service.approve_registration(reg, admin)
    with pytest.raises(ValidationError):
        company_service.reject_registration(reg, admin, "no")


def test_reject_needs_feedback_and_is_final(super_admin):
    reg = _submit()
    with pytest.raises(ValidationError):
        company_service.reject_registration(reg, super_admin, "")

    company_service.reject_registration(reg, super_admin, "Please add a business licence number.")
    reg.refresh_from_db()
    assert reg.status == CompanyRegistration.STATUS_REJECTED
    assert reg.rejection_feedback == "Please add a business licence number."
    assert not Company.objects.exists()
    assert "business licence" in mail.outbox[-1].body

    with pytest.raises(AlreadyProcessed):
        company_service.approve_registration(reg, super_admin)


def test_update_company_details(company, admin):
    company_service.update_company(company, {"address": "Akosombo", "name": "Lakeside Fish"}, admin)
    company.refresh_from_db()
    assert company.address == "Akosombo"
    assert company.name == "Lakeside Fish"


# ----- pages -----
def test_register_page_submits_registration():
    client = Client()
    response = client.post(reverse("register_company"), {
        "company_name": "Blue Water",
        "admin_name": "Kofi",
        "admin_email": "kofi@bluewater.test",
        "admin_password": "longenough1",
        "confirm_password": "longenough1",
    })
    assert response.status_code == 302
    assert response.url == reverse("login")
    assert CompanyRegistration.objects.filter(company_name="Blue Water").exists()


def test_register_page_rejects_mismatched_passwords():
    client = Client()
    response = client.post(reverse("register_company"), {
        "company_name": "Blue Water",
        "admin_name": "Kofi",
        "admin_email": "kofi@bluewater.test",
        "admin_password": "longenough1",
        "confirm_password": "different1",
    })
    assert response.status_code == 200
    assert not CompanyRegistration.objects.exists()


def test_user_without_company_is_sent_to_pending_page():
    reg = _submit()
    client = Client()
    client.force_login(reg.user)
    response = client.get(reverse("dashboard"))
    assert response.status_code == 302
    assert response.url == reverse("pending_approval")
    response = client.get(reverse("pending_approval"))
    assert response.status_code == 200
    assert b"Tilapia Bay" in response.content


def test_super_admin_decides_from_review_page(super_admin):
    reg = _submit()
    client = Client()
    client.force_login(super_admin)
    response = client.get(reverse("company_registrations"))
    assert response.status_code == 200

    response = client.post(reverse("company_registration_decide", args=[reg.pk, "approve"]))
    assert response.status_code == 302
    reg.refresh_from_db()
    assert reg.status == CompanyRegistration.STATUS_APPROVED


def test_registration_api(super_admin):
    anon = APIClient()
    response = anon.post("/api/company-registrations/", {
        "company_name": "Delta Fish",
        "admin_name": "Esi",
        "admin_email": "esi@delta.test",
        "admin_password": "longenough1",
    }, format="json")
    assert response.status_code == 201
    assert "admin_password" not in response.json()
    reg_id = response.json()["id"]

    assert anon.get("/api/company-registrations/").status_code == 403

    client = APIClient()
    client.force_authenticate(super_admin)
    assert [r["id"] for r in client.get("/api/company-registrations/").json()] == [reg_id]
    response = client.post(f"/api/company-registrations/{reg_id}/reject/", {"feedback": "Incomplete"}, format="json")
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    response = client.post(f"/api/company-registrations/{reg_id}/approve/")
    assert response.status_code == 409
