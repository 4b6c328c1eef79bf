# bloodnet/schemas.py
from dataclasses import asdict
from typing import Any, Dict


def _iso(value):
    return value.isoformat() if value else None


def request_document(blood_request) -> Dict[str, Any]:
    return {
        "id": str(blood_request.pk),
        "facility_id": str(blood_request.facility_id),
        "blood_type": blood_request.blood_type,
        "units_requested": blood_request.units_requested,
        "urgency": blood_request.urgency,
        "patient_info": blood_request.patient_info,
        "request_date": _iso(blood_request.request_date),
        "required_by": _iso(blood_request.required_by),
        "status": blood_request.status,
        "effective_status": blood_request.effective_status,
        "fulfilled_by": str(blood_request.fulfilled_by_id) if blood_request.fulfilled_by_id else None,
        "units_provided": blood_request.units_provided,
        "fulfilled_at": _iso(blood_request.fulfilled_at),
        "cancellation_reason": blood_request.cancellation_reason or None,
        "notes": blood_request.notes or None,
    }


def candidate_document(candidate) -> Dict[str, Any]:
    doc = asdict(candidate)
    doc["blood_bank_id"] = str(candidate.blood_bank_id)
    if candidate.distance is not None:
        doc["distance"] = round(candidate.distance, 2)
    return doc


def alert_document(alert) -> Dict[str, Any]:
    doc = asdict(alert)
    doc["blood_bank_id"] = str(alert.blood_bank_id)
    return doc


def inventory_document(line) -> Dict[str, Any]:
    return {
        "id": str(line.pk),
        "blood_bank_id": str(line.blood_bank_id),
        "blood_type": line.blood_type,
        "units_available": line.units_available,
        "units_reserved": line.units_reserved,
        "minimum_threshold": line.minimum_threshold,
        "version": line.version,
        "last_updated": _iso(line.last_updated),
    }


def page_document(page) -> Dict[str, Any]:
    return {
        "requests": [request_document(r) for r in page.requests],
        "total": page.total,
        "page": page.page,
        "per_page": page.per_page,
        "total_pages": page.total_pages,
    }


def summary_document(summary) -> Dict[str, Any]:
    doc = asdict(summary)
    doc["blood_bank_id"] = str(summary.blood_bank_id)
    return doc
