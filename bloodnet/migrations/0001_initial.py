import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


BLOOD_TYPE_CHOICES = [
    ("A+", "A+"), ("A-", "A-"),
    ("B+", "B+"), ("B-", "B-"),
    ("AB+", "AB+"), ("AB-", "AB-"),
    ("O+", "O+"), ("O-", "O-"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="BloodBank",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="Name")),
                ("latitude", models.FloatField(blank=True, null=True, verbose_name="Latitude")),
                ("longitude", models.FloatField(blank=True, null=True, verbose_name="Longitude")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="HealthcareFacility",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="Name")),
                ("facility_type", models.CharField(
                    choices=[("hospital", "Hospital"), ("clinic", "Clinic"), ("emergency", "Emergency")],
                    default="hospital", max_length=20, verbose_name="Facility type",
                )),
                ("latitude", models.FloatField(blank=True, null=True, verbose_name="Latitude")),
                ("longitude", models.FloatField(blank=True, null=True, verbose_name="Longitude")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "Healthcare facilities",
            },
        ),
        migrations.CreateModel(
            name="InventoryLine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("blood_type", models.CharField(choices=BLOOD_TYPE_CHOICES, max_length=3, verbose_name="Blood type")),
                ("units_available", models.PositiveIntegerField(default=0, verbose_name="Units available")),
                ("units_reserved", models.PositiveIntegerField(default=0, verbose_name="Units reserved")),
                ("minimum_threshold", models.PositiveIntegerField(default=10, verbose_name="Minimum threshold")),
                ("version", models.PositiveIntegerField(default=1, verbose_name="Version")),
                ("last_updated", models.DateTimeField(auto_now=True, verbose_name="Last updated")),
                ("blood_bank", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="inventory", to="bloodnet.bloodbank",
                )),
            ],
            options={
                "ordering": ["blood_bank__name", "blood_type"],
                "constraints": [
                    models.UniqueConstraint(fields=("blood_bank", "blood_type"), name="inventory_line_per_bank_type"),
                    models.CheckConstraint(condition=models.Q(units_available__gte=0),
                                           name="inventory_available_non_negative"),
                    models.CheckConstraint(condition=models.Q(units_reserved__gte=0),
                                           name="inventory_reserved_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BloodRequest",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("blood_type", models.CharField(choices=BLOOD_TYPE_CHOICES, max_length=3, verbose_name="Blood type")),
                ("units_requested", models.PositiveIntegerField(
                    validators=[django.core.validators.MinValueValidator(1)], verbose_name="Units requested",
                )),
                ("urgency", models.CharField(
                    choices=[("routine", "Routine"), ("urgent", "Urgent"), ("emergency", "Emergency")],
                    default="routine", max_length=10, verbose_name="Urgency",
                )),
                ("patient_info", models.JSONField(blank=True, null=True, verbose_name="Patient info")),
                ("request_date", models.DateTimeField(default=django.utils.timezone.now, verbose_name="Request date")),
                ("required_by", models.DateTimeField(verbose_name="Required by")),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("fulfilled", "Fulfilled"), ("cancelled", "Cancelled")],
                    db_index=True, default="pending", max_length=10, verbose_name="Status",
                )),
                ("units_provided", models.PositiveIntegerField(blank=True, null=True, verbose_name="Units provided")),
                ("fulfilled_at", models.DateTimeField(blank=True, null=True, verbose_name="Fulfilled at")),
                ("cancellation_reason", models.TextField(blank=True, verbose_name="Cancellation reason")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                ("facility", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="blood_requests",
                    to="bloodnet.healthcarefacility",
                )),
                ("fulfilled_by", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.PROTECT,
                    related_name="fulfilled_requests", to="bloodnet.bloodbank",
                )),
            ],
            options={
                "ordering": ["-request_date"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(units_requested__gt=0), name="request_units_positive"),
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="fulfilled", fulfilled_by__isnull=False,
                                     fulfilled_at__isnull=False, units_provided__isnull=False)
                            | (~models.Q(status="fulfilled") & models.Q(fulfilled_by__isnull=True,
                                                                      fulfilled_at__isnull=True,
                                                                      units_provided__isnull=True))
                        ),
                        name="request_fulfillment_metadata_iff_fulfilled",
                    ),
                ],
            },
        ),
    ]
