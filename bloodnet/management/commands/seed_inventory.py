# bloodnet/management/commands/seed_inventory.py
from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F

from bloodnet.compat import BLOOD_TYPES
from bloodnet.models import BloodBank, HealthcareFacility, InventoryLine

SEED_BANKS = [
    ("Central Blood Bank", 40.7128, -74.0060),
    ("Northside Donor Center", 40.8448, -73.8648),
    ("Riverside Blood Services", 40.7282, -73.7949),
    ("Mobile Collection Unit", None, None),
]

SEED_FACILITIES = [
    ("City General Hospital", HealthcareFacility.FacilityType.HOSPITAL, 40.7411, -73.9897),
    ("Eastside Clinic", HealthcareFacility.FacilityType.CLINIC, 40.7505, -73.9350),
]


class Command(BaseCommand):
    help = "Seed demo blood banks, facilities and one inventory line per blood type per bank."

    def add_arguments(self, parser):
        parser.add_argument("--per-type", type=int, default=25,
                            help="Units available per blood type at each bank (default: 25)")
        parser.add_argument("--threshold", type=int, default=10,
                            help="Minimum threshold for seeded lines (default: 10)")
        parser.add_argument("--reset", action="store_true",
                            help="Restore existing seeded lines to --per-type units")

    @transaction.atomic
    def handle(self, *args, **opts):
        per_type = opts["per_type"]
        threshold = opts["threshold"]

        for name, facility_type, lat, lng in SEED_FACILITIES:
            _, created = HealthcareFacility.objects.get_or_create(
                name=name,
                defaults={"facility_type": facility_type, "latitude": lat, "longitude": lng},
            )
            if created:
                self.stdout.write(f"Facility {name}: created.")

        created_total = 0
        for name, lat, lng in SEED_BANKS:
            bank, _ = BloodBank.objects.get_or_create(
                name=name, defaults={"latitude": lat, "longitude": lng},
            )
            for bt, _ in BLOOD_TYPES:
                line, created = InventoryLine.objects.get_or_create(
                    blood_bank=bank, blood_type=bt,
                    defaults={"units_available": per_type, "minimum_threshold": threshold},
                )
                if not created and opts["reset"]:
                    InventoryLine.objects.filter(pk=line.pk).update(
                        units_available=per_type, units_reserved=0, version=F("version") + 1,
                    )
                    self.stdout.write(self.style.WARNING(f"{name} {bt}: reset to {per_type}."))
                    continue
                if not created:
                    self.stdout.write(f"{name} {bt}: already has {line.units_available}, skipping.")
                    continue
                created_total += 1
            self.stdout.write(self.style.SUCCESS(f"{name}: inventory ready."))

        self.stdout.write(self.style.SUCCESS(f"Done. Created {created_total} inventory line(s)."))
