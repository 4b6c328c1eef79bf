# bloodnet/models.py
import uuid

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .compat import BLOOD_TYPES
from .exceptions import RequestAlreadyProcessed


# -------------------- Locations --------------------
class HealthcareFacility(models.Model):
    class FacilityType(models.TextChoices):
        HOSPITAL = "hospital", "Hospital"
        CLINIC = "clinic", "Clinic"
        EMERGENCY = "emergency", "Emergency"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField("Name", max_length=200)
    facility_type = models.CharField("Facility type", max_length=20, choices=FacilityType.choices,
                                     default=FacilityType.HOSPITAL)
    latitude = models.FloatField("Latitude", null=True, blank=True)
    longitude = models.FloatField("Longitude", null=True, blank=True)
    is_active = models.BooleanField("Active", default=True)
    created_at = models.DateTimeField("Created at", auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Healthcare facilities"

    def __str__(self):
        return self.name


class BloodBank(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField("Name", max_length=200)
    latitude = models.FloatField("Latitude", null=True, blank=True)
    longitude = models.FloatField("Longitude", null=True, blank=True)
    is_active = models.BooleanField("Active", default=True, db_index=True)
    created_at = models.DateTimeField("Created at", auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


# -------------------- Supply --------------------
class InventoryLine(models.Model):
    """
    Stock of one blood type at one blood bank.

    ``units_reserved`` is tracked apart from ``units_available`` and is never
    counted as available. ``version`` increases on every stock mutation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    blood_bank = models.ForeignKey(BloodBank, on_delete=models.PROTECT, related_name="inventory")
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES)
    units_available = models.PositiveIntegerField("Units available", default=0)
    units_reserved = models.PositiveIntegerField("Units reserved", default=0)
    minimum_threshold = models.PositiveIntegerField("Minimum threshold", default=10)
    version = models.PositiveIntegerField("Version", default=1)
    last_updated = models.DateTimeField("Last updated", auto_now=True)

    class Meta:
        ordering = ["blood_bank__name", "blood_type"]
        constraints = [
            models.UniqueConstraint(fields=["blood_bank", "blood_type"], name="inventory_line_per_bank_type"),
            models.CheckConstraint(condition=Q(units_available__gte=0), name="inventory_available_non_negative"),
            models.CheckConstraint(condition=Q(units_reserved__gte=0), name="inventory_reserved_non_negative"),
        ]

    def __str__(self):
        return f"{self.blood_bank.name} {self.blood_type}: {self.units_available}"

    @property
    def is_low(self):
        return 0 < self.units_available <= self.minimum_threshold

    @property
    def stock_status(self):
        if self.units_available == 0:
            return "critical"
        return "low" if self.is_low else "normal"


# -------------------- Demand --------------------
URGENCY_RANK = {"emergency": 0, "urgent": 1, "routine": 2}


class BloodRequest(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        FULFILLED = "fulfilled", "Fulfilled"
        CANCELLED = "cancelled", "Cancelled"

    class Urgency(models.TextChoices):
        ROUTINE = "routine", "Routine"
        URGENT = "urgent", "Urgent"
        EMERGENCY = "emergency", "Emergency"

        @property
        def rank(self):
            # lower sorts first
            return URGENCY_RANK[self.value]

    # derived on read, never stored
    EXPIRED = "expired"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    facility = models.ForeignKey(HealthcareFacility, on_delete=models.PROTECT, related_name="blood_requests")
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES)
    units_requested = models.PositiveIntegerField("Units requested", validators=[MinValueValidator(1)])
    urgency = models.CharField("Urgency", max_length=10, choices=Urgency.choices, default=Urgency.ROUTINE)
    patient_info = models.JSONField("Patient info", null=True, blank=True)
    request_date = models.DateTimeField("Request date", default=timezone.now)
    required_by = models.DateTimeField("Required by")
    status = models.CharField("Status", max_length=10, choices=Status.choices,
                              default=Status.PENDING, db_index=True)
    fulfilled_by = models.ForeignKey(BloodBank, on_delete=models.PROTECT, null=True, blank=True,
                                     related_name="fulfilled_requests")
    units_provided = models.PositiveIntegerField("Units provided", null=True, blank=True)
    fulfilled_at = models.DateTimeField("Fulfilled at", null=True, blank=True)
    cancellation_reason = models.TextField("Cancellation reason", blank=True)
    notes = models.TextField("Notes", blank=True)

    class Meta:
        ordering = ["-request_date"]
        constraints = [
            models.CheckConstraint(condition=Q(units_requested__gt=0), name="request_units_positive"),
            models.CheckConstraint(
                condition=(
                    Q(status="fulfilled", fulfilled_by__isnull=False,
                      fulfilled_at__isnull=False, units_provided__isnull=False)
                    | (~Q(status="fulfilled") & Q(fulfilled_by__isnull=True,
                                                   fulfilled_at__isnull=True, units_provided__isnull=True))
                ),
                name="request_fulfillment_metadata_iff_fulfilled",
            ),
        ]

    def __str__(self):
        return f"Req {self.blood_type} x{self.units_requested} ({self.urgency}) - {self.effective_status}"

    def is_expired(self, now=None):
        now = now or timezone.now()
        return self.status == self.Status.PENDING and self.required_by <= now

    @property
    def effective_status(self):
        """Persisted status, or ``expired`` for a pending request past its deadline."""
        if self.is_expired():
            return self.EXPIRED
        return self.status

    def ensure_pending(self, now=None):
        state = self.EXPIRED if self.is_expired(now) else self.status
        if state != self.Status.PENDING:
            raise RequestAlreadyProcessed(
                f"Request {self.pk} is already {state}.",
                request_id=str(self.pk), status=state,
            )
