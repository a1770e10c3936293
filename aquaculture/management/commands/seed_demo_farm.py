from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from aquaculture.models import Cage, Company, UserProfile
from aquaculture.services import records, stocking
from feed_inventory.models import FeedSupplier, FeedType
from feed_inventory.stock import record_purchase

CAGES = ["C1", "C2", "C3", "C4", "C5", "C6"]
FEEDS = [
    # name, protein %, pellet, price per kg
    ("Starter 2mm", Decimal("40"), "2mm", Decimal("18.50")),
    ("Grower 4mm", Decimal("35"), "4mm", Decimal("15.00")),
    ("Finisher 6mm", Decimal("30"), "6mm", Decimal("13.20")),
]


class Command(BaseCommand):
    help = "Create a demo company with cages, feed, an approved stocking and a few weeks of records"

    def add_arguments(self, parser):
        parser.add_argument("--company", default="Demo Fish Farm")
        parser.add_argument("--admin-email", default="admin@demo.farm")
        parser.add_argument("--password", default="demo-pass-123")
        parser.add_argument("--days", type=int, default=28, help="Days of daily records to generate")

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()
        company, _ = Company.objects.get_or_create(
            name=options["company"], defaults={"abbreviation": "DEMO", "contact_email": options["admin_email"]}
        )
        admin, created = User.objects.get_or_create(
            username=options["admin_email"], defaults={"email": options["admin_email"]}
        )
        if created:
            admin.set_password(options["password"])
            admin.save()
        profile = admin.profile
        profile.company = company
        profile.role = UserProfile.ADMIN
        profile.full_name = profile.full_name or "Demo Admin"
        profile.save()

        supplier, _ = FeedSupplier.objects.get_or_create(company=company, name="Raanan Fish Feed")
        feed_types = []
        for name, protein, pellet, price in FEEDS:
            ft, made = FeedType.objects.get_or_create(
                company=company,
                name=name,
                defaults={
                    "supplier": supplier,
                    "protein_content": protein,
                    "pellet_size": pellet,
                    "price_per_kg": price,
                    "minimum_stock": Decimal("200"),
                },
            )
            if made:
                record_purchase(ft, quantity=Decimal("2000"), user=admin, invoice_number="DEMO-OPENING")
            feed_types.append(ft)

        for name in CAGES:
            Cage.objects.get_or_create(company=company, name=name, defaults={"capacity": 20000, "created_by": admin})

        cage = Cage.objects.get(company=company, name=CAGES[0])
        if cage.status in Cage.STOCKABLE_STATUSES:
            start = timezone.localdate() - timedelta(days=options["days"])
            batch = stocking.create_stocking(
                cage, stocking_date=start, fish_count=10000, initial_abw=Decimal("5"), user=admin
            )
            stocking.approve_record(stocking.STOCKING, batch.pk, admin, company=company)
            cage.refresh_from_db()
            for offset in range(options["days"]):
                day = start + timedelta(days=offset)
                records.create_daily_record(
                    cage,
                    date=day,
                    feed_amount=Decimal("12") + Decimal(offset) / 2,
                    feed_type=feed_types[0] if offset < 14 else feed_types[1],
                    mortality=offset % 4,
                    user=admin,
                )
                if offset and offset % 14 == 0:
                    abw_g = Decimal("5") + Decimal(offset) * Decimal("1.5")
                    records.create_biweekly_record(
                        cage,
                        date=day,
                        samplings=[{"fish_count": 50, "total_weight": abw_g * 50}],
                        user=admin,
                    )

        self.stdout.write(self.style.SUCCESS(
            f"Demo farm '{company.name}' ready. Log in as {options['admin_email']}."
        ))
