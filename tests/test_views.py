"""Tests for the JSON endpoints."""

import uuid
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from bloodnet.models import BloodRequest, HealthcareFacility, InventoryLine


def _post(client, url, payload):
    return client.post(url, data=payload, content_type="application/json")


def _future(hours=12):
    return (timezone.now() + timedelta(hours=hours)).isoformat()


# ============================================================================
# Creation
# ============================================================================


@pytest.mark.django_db
def test_create_request(client, facility) -> None:
    response = _post(client, reverse("bloodnet:requests"), {
        "facility": str(facility.pk),
        "blood_type": "AB+",
        "units_requested": 2,
        "urgency": "urgent",
        "required_by": _future(),
        "patient_info": {"age": 30, "gender": "female"},
    })

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "pending"
    assert body["data"]["effective_status"] == "pending"
    assert BloodRequest.objects.filter(pk=body["data"]["id"]).exists()


@pytest.mark.django_db
@pytest.mark.parametrize("field, value", [
    ("blood_type", "C+"),
    ("units_requested", 0),
    ("units_requested", 51),
    ("urgency", "whenever"),
    ("required_by", "2001-01-01T00:00:00Z"),
    ("patient_info", {"age": 300}),
])
def test_create_request_validation(client, facility, field, value) -> None:
    payload = {
        "facility": str(facility.pk),
        "blood_type": "O+",
        "units_requested": 1,
        "urgency": "routine",
        "required_by": _future(),
    }
    payload[field] = value

    response = _post(client, reverse("bloodnet:requests"), payload)

    assert response.status_code == 400
    assert field in response.json()["errors"]
    assert BloodRequest.objects.count() == 0


@pytest.mark.django_db
def test_malformed_json(client) -> None:
    response = client.post(reverse("bloodnet:requests"), data="{nope", content_type="application/json")

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationFailed"


@pytest.mark.django_db
def test_wrong_method(client) -> None:
    assert client.delete(reverse("bloodnet:requests")).status_code == 405


# ============================================================================
# Matching
# ============================================================================


@pytest.mark.django_db
def test_inventory_matches_endpoint(client, make_bank, make_line) -> None:
    make_line(make_bank(name="Exact", latitude=40.0, longitude=-75.0), "A+", 3)
    make_line(make_bank(name="Compatible", latitude=40.01, longitude=-75.0), "O-", 9)

    response = client.get(reverse("bloodnet:inventory_matches"),
                          {"blood_type": "A+", "units": 2, "lat": 40.0, "lng": -75.0})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [m["blood_bank_name"] for m in data] == ["Exact", "Compatible"]
    assert data[0]["distance"] == 0.0
    assert data[1]["exact_match"] is False


@pytest.mark.django_db
def test_inventory_matches_needs_both_coordinates(client) -> None:
    response = client.get(reverse("bloodnet:inventory_matches"), {"blood_type": "A+", "units": 2, "lat": 40.0})

    assert response.status_code == 400


@pytest.mark.django_db
def test_request_matches_endpoint(client, make_request, make_bank, make_line) -> None:
    make_line(make_bank(name="Nearby"), "O+", 5)
    blood_request = make_request(blood_type="O+", units_requested=2)

    response = client.get(reverse("bloodnet:request_matches", args=[blood_request.pk]))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["request_id"] == str(blood_request.pk)
    assert data["matches"][0]["blood_bank_name"] == "Nearby"
    assert data["matches"][0]["distance"] is None


@pytest.mark.django_db
def test_request_matches_reads_the_request_once(client, make_request, make_bank, make_line,
                                                django_assert_num_queries) -> None:
    make_line(make_bank(), "O+", 5)
    blood_request = make_request(blood_type="O+")

    # one read for the request and its facility, one for the inventory lines
    with django_assert_num_queries(2):
        response = client.get(reverse("bloodnet:request_matches", args=[blood_request.pk]))

    assert response.status_code == 200


# ============================================================================
# Fulfillment and cancellation
# ============================================================================


@pytest.mark.django_db
def test_fulfill_endpoint(client, make_request, make_bank, make_line) -> None:
    bank = make_bank()
    line = make_line(bank, "O+", 5)
    blood_request = make_request(blood_type="O+", units_requested=2)
    url = reverse("bloodnet:request_fulfill", args=[blood_request.pk])

    first = _post(client, url, {"blood_bank_id": str(bank.pk), "units_provided": 2})
    second = _post(client, url, {"blood_bank_id": str(bank.pk), "units_provided": 2})

    assert first.status_code == 200
    assert first.json()["data"]["status"] == "fulfilled"
    assert first.json()["data"]["fulfilled_by"] == str(bank.pk)
    assert second.status_code == 409
    assert second.json()["error_type"] == "RequestAlreadyProcessed"
    assert InventoryLine.objects.get(pk=line.pk).units_available == 3


@pytest.mark.django_db
def test_fulfill_endpoint_insufficient(client, make_request, make_bank, make_line) -> None:
    bank = make_bank()
    make_line(bank, "B+", 1)
    blood_request = make_request(blood_type="B+", units_requested=2)

    response = _post(client, reverse("bloodnet:request_fulfill", args=[blood_request.pk]),
                     {"blood_bank_id": str(bank.pk), "units_provided": 2})

    assert response.status_code == 409
    assert response.json()["error_type"] == "InsufficientInventory"


@pytest.mark.django_db
def test_fulfill_endpoint_missing_line(client, make_request, make_bank) -> None:
    blood_request = make_request(blood_type="B+")

    response = _post(client, reverse("bloodnet:request_fulfill", args=[blood_request.pk]),
                     {"blood_bank_id": str(make_bank().pk), "units_provided": 1})

    assert response.status_code == 404
    assert response.json()["error_type"] == "InventoryLineNotFound"


@pytest.mark.django_db
def test_cancel_endpoint(client, make_request) -> None:
    blood_request = make_request()
    url = reverse("bloodnet:request_cancel", args=[blood_request.pk])

    assert _post(client, url, {"reason": " "}).status_code == 400
    response = _post(client, url, {"reason": "Surgery postponed"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"
    assert response.json()["data"]["cancellation_reason"] == "Surgery postponed"


@pytest.mark.django_db
def test_detail_not_found(client) -> None:
    response = client.get(reverse("bloodnet:request_detail", args=[uuid.uuid4()]))

    assert response.status_code == 404


@pytest.mark.django_db
def test_detail_shows_expired(client, make_request) -> None:
    blood_request = make_request(required_by=timezone.now() - timedelta(hours=1))

    data = client.get(reverse("bloodnet:request_detail", args=[blood_request.pk])).json()["data"]

    assert data["status"] == "pending"
    assert data["effective_status"] == "expired"


# ============================================================================
# Urgency and inventory upkeep
# ============================================================================


@pytest.mark.django_db
def test_urgent_endpoint(client, make_request) -> None:
    make_request(urgency=BloodRequest.Urgency.ROUTINE)
    emergency = make_request(urgency=BloodRequest.Urgency.EMERGENCY)

    data = client.get(reverse("bloodnet:requests_urgent")).json()["data"]

    assert [r["id"] for r in data] == [str(emergency.pk)]


@pytest.mark.django_db
def test_alerts_and_adjust_endpoints(client, make_bank) -> None:
    bank = make_bank()
    adjust_url = reverse("bloodnet:bank_inventory_adjust", args=[bank.pk])

    assert _post(client, adjust_url, {"blood_type": "O-"}).status_code == 400
    response = _post(client, adjust_url, {"blood_type": "O-", "units_available": 3, "minimum_threshold": 5})
    assert response.status_code == 200
    assert response.json()["data"]["units_available"] == 3

    alerts = client.get(reverse("bloodnet:bank_alerts", args=[bank.pk])).json()["data"]
    assert [(a["blood_type"], a["alert_type"]) for a in alerts] == [("O-", "low_stock")]


# ============================================================================
# Listing and summaries
# ============================================================================


@pytest.mark.django_db
def test_list_requests_endpoint(client, make_request) -> None:
    make_request(blood_type="A+", urgency=BloodRequest.Urgency.ROUTINE)
    emergency = make_request(blood_type="A+", urgency=BloodRequest.Urgency.EMERGENCY)
    make_request(blood_type="B-")

    response = client.get(reverse("bloodnet:requests"), {"blood_type": "A+", "per_page": 1})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert data["total_pages"] == 2
    assert [r["id"] for r in data["requests"]] == [str(emergency.pk)]


@pytest.mark.django_db
def test_list_requests_endpoint_rejects_bad_filters(client) -> None:
    response = client.get(reverse("bloodnet:requests"), {"status": "lost", "per_page": 500})

    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"status", "per_page"}


@pytest.mark.django_db
def test_facility_requests_endpoint(client, facility, make_request) -> None:
    other = HealthcareFacility.objects.create(name="Eastside Clinic")
    mine = make_request()
    make_request(facility=other)

    data = client.get(reverse("bloodnet:facility_requests", args=[facility.pk])).json()["data"]

    assert [r["id"] for r in data["requests"]] == [str(mine.pk)]
    assert data["per_page"] == 10
    assert client.get(reverse("bloodnet:facility_requests", args=[uuid.uuid4()])).status_code == 404


@pytest.mark.django_db
def test_bank_summary_endpoint(client, make_bank, make_line) -> None:
    bank = make_bank()
    make_line(bank, "O-", 0, units_reserved=2)
    make_line(bank, "A+", 30, units_reserved=5)

    data = client.get(reverse("bloodnet:bank_summary", args=[bank.pk])).json()["data"]

    assert data["blood_bank_id"] == str(bank.pk)
    assert data["total_units"] == 37
    assert data["critical_stock_count"] == 1
    assert data["by_blood_type"]["A+"] == {"available": 30, "reserved": 5, "threshold": 10, "status": "normal"}
