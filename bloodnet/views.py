# bloodnet/views.py
import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import services
from .exceptions import BloodNetError, Conflict, NotFound, StorageUnavailable, ValidationFailed
from .forms import (
    BloodRequestForm, CancelForm, FulfillmentForm, InventoryAdjustForm, MatchQueryForm, RequestListForm,
)
from .schemas import (
    alert_document, candidate_document, inventory_document, page_document, request_document, summary_document,
)

logger = logging.getLogger(__name__)


# ------------------------ helpers ------------------------
def _status_for(exc):
    if isinstance(exc, ValidationFailed):
        return 400
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, Conflict):
        return 409
    if isinstance(exc, StorageUnavailable):
        return 503
    return 500


def _error(message, status, **extra):
    return JsonResponse({"success": False, "error": message, **extra}, status=status)


def _ok(data, status=200, message=None):
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return JsonResponse(payload, status=status)


def _form_errors(form):
    return _error("Validation failed.", 400, errors=form.errors.get_json_data())


def _json_body(request):
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationFailed(f"Malformed JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise ValidationFailed("JSON body must be an object.")
    return body


def api_view(view_func):
    """Map core errors onto JSON error responses with a matching status code."""
    @wraps(view_func)
    @csrf_exempt
    def _wrapped(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except BloodNetError as exc:
            status = _status_for(exc)
            if status >= 500:
                logger.error("%s %s failed: %s", request.method, request.path, exc)
            return _error(exc.message, status, error_type=type(exc).__name__)
    return _wrapped


# ------------------------ requests ------------------------
@api_view
@require_http_methods(["GET", "POST"])
def request_collection(request):
    if request.method == "GET":
        return _request_list(request)
    return _request_create(request)


def _request_list(request):
    form = RequestListForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    return _ok(page_document(services.list_requests(**form.filters())))


def _request_create(request):
    form = BloodRequestForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    blood_request = services.create_request(
        facility_id=data["facility"].pk,
        blood_type=data["blood_type"],
        units_requested=data["units_requested"],
        urgency_level=data["urgency"],
        required_by=data["required_by"],
        patient_info=data.get("patient_info"),
        notes=data.get("notes"),
    )
    return _ok(request_document(blood_request), status=201, message="Blood request created.")


@api_view
@require_GET
def request_detail(request, pk):
    return _ok(request_document(services.get_request(pk)))


@api_view
@require_GET
def request_matches(request, pk):
    blood_request = services.get_request(pk)
    matches = services.candidates_for(blood_request)
    return _ok({
        "request_id": str(blood_request.pk),
        "blood_type": blood_request.blood_type,
        "units_requested": blood_request.units_requested,
        "urgency": blood_request.urgency,
        "matches": [candidate_document(m) for m in matches],
    })


@api_view
@require_POST
def request_fulfill(request, pk):
    form = FulfillmentForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    blood_request = services.fulfill_request(
        pk,
        data["blood_bank_id"],
        data["units_provided"],
        notes=data.get("notes") or None,
    )
    return _ok(request_document(blood_request), message="Blood request fulfilled.")


@api_view
@require_POST
def request_cancel(request, pk):
    form = CancelForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    blood_request = services.cancel_request(pk, form.cleaned_data["reason"])
    return _ok(request_document(blood_request), message="Blood request cancelled.")


@api_view
@require_GET
def requests_urgent(request):
    return _ok([request_document(r) for r in services.urgent_requests()])


# ------------------------ inventory ------------------------
@api_view
@require_GET
def inventory_matches(request):
    form = MatchQueryForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    matches = services.find_inventory_matches(
        form.cleaned_data["blood_type"],
        form.cleaned_data["units"],
        form.coordinates(),
    )
    return _ok([candidate_document(m) for m in matches])


@api_view
@require_GET
def bank_alerts(request, pk):
    return _ok([alert_document(a) for a in services.inventory_alerts(pk)])


@api_view
@require_POST
def bank_inventory_adjust(request, pk):
    form = InventoryAdjustForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    line = services.adjust_inventory(
        pk,
        data["blood_type"],
        units_available=data.get("units_available"),
        units_reserved=data.get("units_reserved"),
        minimum_threshold=data.get("minimum_threshold"),
    )
    return _ok(inventory_document(line), message="Inventory updated.")


@api_view
@require_GET
def bank_summary(request, pk):
    return _ok(summary_document(services.inventory_summary(pk)))


# ------------------------ facilities ------------------------
@api_view
@require_GET
def facility_requests(request, pk):
    form = RequestListForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    filters = form.filters()
    filters.pop("facility_id", None)
    return _ok(page_document(services.list_facility_requests(pk, **filters)))
