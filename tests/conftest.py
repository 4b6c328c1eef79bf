"""Shared fixtures for the blood request matching tests."""

from datetime import timedelta

import pytest
from django.utils import timezone

from bloodnet.models import BloodBank, BloodRequest, HealthcareFacility, InventoryLine


@pytest.fixture
def facility(db) -> HealthcareFacility:
    # Midtown Manhattan
    return HealthcareFacility.objects.create(name="City General Hospital", latitude=40.7411, longitude=-73.9897)


@pytest.fixture
def facility_without_location(db) -> HealthcareFacility:
    return HealthcareFacility.objects.create(name="Field Clinic")


@pytest.fixture
def make_bank(db):
    def _make(name="Central Blood Bank", latitude=None, longitude=None, is_active=True):
        return BloodBank.objects.create(name=name, latitude=latitude, longitude=longitude, is_active=is_active)
    return _make


@pytest.fixture
def make_line(db):
    def _make(bank, blood_type, units_available, units_reserved=0, minimum_threshold=10):
        return InventoryLine.objects.create(
            blood_bank=bank,
            blood_type=blood_type,
            units_available=units_available,
            units_reserved=units_reserved,
            minimum_threshold=minimum_threshold,
        )
    return _make


@pytest.fixture
def make_request(facility):
    def _make(blood_type="O+", units_requested=2, urgency=BloodRequest.Urgency.ROUTINE,
              required_by=None, status=BloodRequest.Status.PENDING, **extra):
        return BloodRequest.objects.create(
            facility=extra.pop("facility", facility),
            blood_type=blood_type,
            units_requested=units_requested,
            urgency=urgency,
            required_by=required_by or timezone.now() + timedelta(days=1),
            status=status,
            **extra,
        )
    return _make
