import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from aquaculture.models import Company
from aquaculture.services.records import import_daily_rows, parse_daily_rows


class Command(BaseCommand):
    help = "Import daily feeding/mortality records from a CSV or Excel sheet"

    def add_arguments(self, parser):
        parser.add_argument("path", help="CSV or XLSX file with cage, date, feed_amount columns")
        parser.add_argument("--company", required=True, help="Company name (case-insensitive)")
        parser.add_argument(
            "--user",
            help="Username recorded as the creator of the records. Defaults to the company's first admin.",
        )
        parser.add_argument("--dry-run", action="store_true", help="Validate every row without saving")

    def handle(self, *args, **options):
        path = options["path"]
        if not os.path.exists(path):
            raise CommandError(f"File not found: {path}")

        company = Company.objects.filter(name__iexact=options["company"].strip()).first()
        if company is None:
            raise CommandError(f"Unknown company: {options['company']}")

        User = get_user_model()
        if options.get("user"):
            user = User.objects.filter(username=options["user"]).first()
            if user is None:
                raise CommandError(f"Unknown user: {options['user']}")
        else:
            user = (
                User.objects.filter(profile__company=company, profile__role__in=["admin", "super_admin"])
                .order_by("pk")
                .first()
            )

        with open(path, "rb") as fh:
            rows = parse_daily_rows(fh, path)
        result = import_daily_rows(rows, company, user, dry_run=options["dry_run"])

        for err in result.errors:
            self.stderr.write(f"Row {err['row']}: {err['error']}")
        verb = "would be imported" if options["dry_run"] else "imported"
        style = self.style.SUCCESS if not result.errors else self.style.WARNING
        self.stdout.write(style(f"{result.created} record(s) {verb}, {len(result.errors)} error(s)."))
