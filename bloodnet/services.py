# bloodnet/services.py
"""
Matching, allocation and lifecycle operations for blood requests.

Everything that mutates stock or request state goes through this module.
Callers (views, management commands, other applications) get plain model
instances or dataclasses back and decide themselves whether to notify or
audit anything.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from typing import Optional

from django.conf import settings
from django.core.paginator import Paginator
from django.db import InterfaceError, OperationalError, transaction
from django.db.models import Case, F, IntegerField, Value, When
from django.utils import timezone

from .compat import compatible_types, validate_blood_type
from .exceptions import (
    BloodBankNotFound, Conflict, FacilityNotFound, InsufficientInventory, InvalidQuantity,
    InvalidCoordinates, InvalidUrgency, InventoryLineNotFound, RequestAlreadyProcessed, RequestNotFound,
    StorageUnavailable, ValidationFailed,
)
from .geo import Coordinates, check_coordinates, coordinates_of, distance_between
from .models import URGENCY_RANK, BloodBank, BloodRequest, HealthcareFacility, InventoryLine

logger = logging.getLogger(__name__)


# ------------------------ results ------------------------
@dataclass(frozen=True)
class MatchCandidate:
    blood_bank_id: uuid.UUID
    blood_bank_name: str
    blood_type: str
    units_available: int
    distance: Optional[float] = None
    exact_match: bool = False
    sufficient: bool = False


@dataclass(frozen=True)
class InventoryAlert:
    blood_bank_id: uuid.UUID
    blood_type: str
    current_units: int
    minimum_threshold: int
    alert_type: str
    message: str


@dataclass(frozen=True)
class RequestPage:
    requests: list
    total: int
    page: int
    per_page: int
    total_pages: int


@dataclass(frozen=True)
class BloodTypeStock:
    available: int
    reserved: int
    threshold: int
    status: str


@dataclass(frozen=True)
class InventorySummary:
    blood_bank_id: uuid.UUID
    total_units: int
    total_reserved: int
    total_available: int
    low_stock_count: int
    critical_stock_count: int
    by_blood_type: dict


# ------------------------ helpers ------------------------
def storage_guard(func):
    """Turn database connectivity failures into ``StorageUnavailable``."""
    @wraps(func)
    def _wrapped(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.exception("Storage failure in %s", func.__name__)
            raise StorageUnavailable(operation=func.__name__) from exc
    return _wrapped


def _as_uuid(value, not_found):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise not_found(f"{value!r} is not a valid identifier.") from None


def _validate_units(units, field="units"):
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise InvalidQuantity(f"{field} must be a positive whole number, got {units!r}.", field=field)
    return units


def _validate_count(value, field):
    # manual adjustments may go to zero, never below
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQuantity(f"{field} must be zero or a positive whole number, got {value!r}.", field=field)
    return value


def _validate_urgency(urgency):
    if urgency not in BloodRequest.Urgency.values:
        raise InvalidUrgency(f"Unsupported urgency level: {urgency!r}", urgency=urgency)
    return BloodRequest.Urgency(urgency)


def _max_units_per_request():
    return getattr(settings, "BLOODNET_MAX_UNITS_PER_REQUEST", 50)


def _urgency_rank():
    return Case(
        *[When(urgency=level, then=Value(rank)) for level, rank in URGENCY_RANK.items()],
        output_field=IntegerField(),
    )


def _aware(value, field):
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationFailed(f"{field} must be a datetime.", field=field)
    if timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def _coerce_coordinates(value) -> Optional[Coordinates]:
    if value is None:
        return None
    try:
        lat, lng = value
        point = Coordinates(float(lat), float(lng))
        check_coordinates(point)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinates(f"Invalid requester coordinates {value!r}: {exc}",
                                 field="requester_coordinates") from None
    return point


# ------------------------ create / read ------------------------
@storage_guard
def create_request(facility_id, blood_type, units_requested, urgency_level, required_by,
                   patient_info=None, notes=None) -> BloodRequest:
    validate_blood_type(blood_type)
    _validate_units(units_requested, "units_requested")
    max_units = _max_units_per_request()
    if units_requested > max_units:
        raise InvalidQuantity(f"Cannot request more than {max_units} units at once.",
                              field="units_requested")
    urgency = _validate_urgency(urgency_level)
    if required_by is None:
        raise ValidationFailed("required_by is required.", field="required_by")
    required_by = _aware(required_by, "required_by")

    facility = _get_facility(facility_id)

    blood_request = BloodRequest.objects.create(
        facility=facility,
        blood_type=blood_type,
        units_requested=units_requested,
        urgency=urgency,
        required_by=required_by,
        patient_info=patient_info,
        notes=(notes or "").strip(),
    )
    logger.info(
        "Blood request %s created: %s x%d (%s) for facility %s",
        blood_request.pk, blood_type, units_requested, urgency.value, facility.pk,
    )
    return blood_request


@storage_guard
def get_request(request_id) -> BloodRequest:
    pk = _as_uuid(request_id, RequestNotFound)
    try:
        return BloodRequest.objects.select_related("facility", "fulfilled_by").get(pk=pk)
    except BloodRequest.DoesNotExist:
        raise RequestNotFound(f"Blood request {pk} not found.", request_id=str(pk)) from None


REQUEST_STATUS_FILTERS = [*BloodRequest.Status.values, BloodRequest.EXPIRED]
MAX_PAGE_SIZE = 100


@storage_guard
def list_requests(facility_id=None, blood_type=None, urgency=None, status=None,
                  date_from=None, date_to=None, page=1, per_page=20) -> RequestPage:
    """
    Filtered, paginated blood requests.

    Most urgent first, newest first within one urgency level. ``status``
    filters on the effective status: ``pending`` leaves out requests past
    their deadline and ``expired`` selects only those. A page past the end
    returns the last page.
    """
    _validate_units(page, "page")
    _validate_units(per_page, "per_page")
    if per_page > MAX_PAGE_SIZE:
        raise InvalidQuantity(f"per_page cannot exceed {MAX_PAGE_SIZE}.", field="per_page")
    date_from = _aware(date_from, "date_from")
    date_to = _aware(date_to, "date_to")
    if date_from and date_to and date_from > date_to:
        raise ValidationFailed("date_from must not be after date_to.", field="date_from")

    qs = BloodRequest.objects.select_related("facility", "fulfilled_by")
    if facility_id is not None:
        qs = qs.filter(facility_id=_as_uuid(facility_id, FacilityNotFound))
    if blood_type:
        qs = qs.filter(blood_type=validate_blood_type(blood_type))
    if urgency:
        qs = qs.filter(urgency=_validate_urgency(urgency))
    if status:
        if status not in REQUEST_STATUS_FILTERS:
            raise ValidationFailed(f"Unsupported status: {status!r}", field="status", status=status)
        now = timezone.now()
        if status == BloodRequest.EXPIRED:
            qs = qs.filter(status=BloodRequest.Status.PENDING, required_by__lte=now)
        elif status == BloodRequest.Status.PENDING:
            qs = qs.filter(status=BloodRequest.Status.PENDING, required_by__gt=now)
        else:
            qs = qs.filter(status=status)
    if date_from:
        qs = qs.filter(request_date__gte=date_from)
    if date_to:
        qs = qs.filter(request_date__lte=date_to)

    qs = qs.annotate(urgency_rank=_urgency_rank()).order_by("urgency_rank", "-request_date", "id")
    paginator = Paginator(qs, per_page)
    current = paginator.get_page(page)
    return RequestPage(
        requests=list(current.object_list),
        total=paginator.count,
        page=current.number,
        per_page=per_page,
        total_pages=paginator.num_pages,
    )


@storage_guard
def list_facility_requests(facility_id, **filters) -> RequestPage:
    """Requests raised by one facility; same filters as ``list_requests``, ten per page by default."""
    facility = _get_facility(facility_id)
    filters.setdefault("per_page", 10)
    return list_requests(facility_id=facility.pk, **filters)


def _get_facility(facility_id) -> HealthcareFacility:
    pk = _as_uuid(facility_id, FacilityNotFound)
    try:
        return HealthcareFacility.objects.get(pk=pk)
    except HealthcareFacility.DoesNotExist:
        raise FacilityNotFound(f"Healthcare facility {pk} not found.") from None


# ------------------------ matching (read only) ------------------------
def _ranking_key(candidate: MatchCandidate):
    unknown_distance = candidate.distance is None
    return (
        not candidate.exact_match,
        unknown_distance,
        0.0 if unknown_distance else candidate.distance,
        -candidate.units_available,
        candidate.blood_bank_name,
        str(candidate.blood_bank_id),
    )


@storage_guard
def find_inventory_matches(blood_type, units_needed, requester_coordinates=None) -> list[MatchCandidate]:
    """
    Rank every compatible, in-stock inventory line for a request.

    Order: exact blood type first, then nearest (unknown distance last),
    then most units available. Lines with no units available are left out.
    Nothing is written.
    """
    donor_types = compatible_types(blood_type)
    _validate_units(units_needed, "units_needed")
    origin = _coerce_coordinates(requester_coordinates)

    lines = (
        InventoryLine.objects.select_related("blood_bank")
        .filter(blood_type__in=donor_types, units_available__gt=0, blood_bank__is_active=True)
    )
    candidates = [
        MatchCandidate(
            blood_bank_id=line.blood_bank_id,
            blood_bank_name=line.blood_bank.name,
            blood_type=line.blood_type,
            units_available=line.units_available,
            distance=distance_between(origin, coordinates_of(line.blood_bank)),
            exact_match=line.blood_type == blood_type,
            sufficient=line.units_available >= units_needed,
        )
        for line in lines
    ]
    candidates.sort(key=_ranking_key)
    return candidates


def matches_for_request(request_id) -> list[MatchCandidate]:
    """Candidates for a stored pending request, measured from its facility."""
    return candidates_for(get_request(request_id))


def candidates_for(blood_request: BloodRequest) -> list[MatchCandidate]:
    blood_request.ensure_pending()
    return find_inventory_matches(
        blood_request.blood_type,
        blood_request.units_requested,
        coordinates_of(blood_request.facility),
    )


# ------------------------ lifecycle transitions ------------------------
def _lock_request(request_id) -> BloodRequest:
    pk = _as_uuid(request_id, RequestNotFound)
    try:
        return BloodRequest.objects.select_for_update().get(pk=pk)
    except BloodRequest.DoesNotExist:
        raise RequestNotFound(f"Blood request {pk} not found.", request_id=str(pk)) from None


def _lock_inventory_line(blood_bank_id, blood_type) -> InventoryLine:
    bank_pk = _as_uuid(blood_bank_id, BloodBankNotFound)
    try:
        return InventoryLine.objects.select_for_update().get(blood_bank_id=bank_pk, blood_type=blood_type)
    except InventoryLine.DoesNotExist:
        if not BloodBank.objects.filter(pk=bank_pk).exists():
            raise BloodBankNotFound(f"Blood bank {bank_pk} not found.") from None
        raise InventoryLineNotFound(
            f"Blood bank {bank_pk} has no {blood_type} inventory.",
            blood_bank_id=str(bank_pk), blood_type=blood_type,
        ) from None


@storage_guard
def fulfill_request(request_id, blood_bank_id, units_provided, notes=None) -> BloodRequest:
    """
    Fulfill a pending request from one blood bank's stock of the requested type.

    The request check, the stock check, the stock decrement and the status
    change happen in one transaction. Both rows are locked, and both writes
    are guarded updates, so a competing fulfillment that commits first makes
    this one fail with ``RequestAlreadyProcessed`` or ``InsufficientInventory``
    and leaves no partial change behind.
    """
    _validate_units(units_provided, "units_provided")
    try:
        with transaction.atomic():
            now = timezone.now()
            blood_request = _lock_request(request_id)
            blood_request.ensure_pending(now)
            if units_provided > blood_request.units_requested:
                raise InvalidQuantity(
                    f"Units provided ({units_provided}) cannot exceed units requested "
                    f"({blood_request.units_requested}).",
                    field="units_provided",
                )

            line = _lock_inventory_line(blood_bank_id, blood_request.blood_type)
            if line.units_available < units_provided:
                raise InsufficientInventory(
                    f"{line.blood_bank_id} has {line.units_available} {line.blood_type} units, "
                    f"{units_provided} requested.",
                    available=line.units_available, requested=units_provided,
                )

            drained = (
                InventoryLine.objects
                .filter(pk=line.pk, units_available__gte=units_provided)
                .update(
                    units_available=F("units_available") - units_provided,
                    version=F("version") + 1,
                    last_updated=now,
                )
            )
            if not drained:
                raise InsufficientInventory("Inventory changed; choose a different blood bank.")

            changes = {
                "status": BloodRequest.Status.FULFILLED,
                "fulfilled_by_id": line.blood_bank_id,
                "units_provided": units_provided,
                "fulfilled_at": now,
            }
            if notes:
                changes["notes"] = notes
            moved = (
                BloodRequest.objects
                .filter(pk=blood_request.pk, status=BloodRequest.Status.PENDING, required_by__gt=now)
                .update(**changes)
            )
            if not moved:
                raise RequestAlreadyProcessed(f"Request {blood_request.pk} already processed.",
                                              request_id=str(blood_request.pk))
    except Conflict as exc:
        logger.warning("Fulfillment of %s from %s rejected: %s", request_id, blood_bank_id, exc)
        raise

    blood_request.refresh_from_db()
    logger.info(
        "Blood request %s fulfilled by %s with %d unit(s)",
        blood_request.pk, blood_request.fulfilled_by_id, units_provided,
    )
    return blood_request


@storage_guard
def cancel_request(request_id, reason) -> BloodRequest:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A cancellation reason is required.", field="reason")

    try:
        with transaction.atomic():
            now = timezone.now()
            blood_request = _lock_request(request_id)
            blood_request.ensure_pending(now)
            moved = (
                BloodRequest.objects
                .filter(pk=blood_request.pk, status=BloodRequest.Status.PENDING, required_by__gt=now)
                .update(status=BloodRequest.Status.CANCELLED, cancellation_reason=reason)
            )
            if not moved:
                raise RequestAlreadyProcessed(f"Request {blood_request.pk} already processed.",
                                              request_id=str(blood_request.pk))
    except Conflict as exc:
        logger.warning("Cancellation of %s rejected: %s", request_id, exc)
        raise

    blood_request.refresh_from_db()
    logger.info("Blood request %s cancelled: %s", blood_request.pk, reason)
    return blood_request


# ------------------------ urgency ranking ------------------------
@storage_guard
def urgent_requests() -> list[BloodRequest]:
    """Pending urgent/emergency requests, emergency first, soonest deadline first."""
    urgent_levels = [BloodRequest.Urgency.EMERGENCY, BloodRequest.Urgency.URGENT]
    qs = (
        BloodRequest.objects.select_related("facility")
        .filter(status=BloodRequest.Status.PENDING, urgency__in=urgent_levels,
                required_by__gt=timezone.now())
        .annotate(urgency_rank=_urgency_rank())
        .order_by("urgency_rank", "required_by", "request_date")
    )
    return list(qs)


# ------------------------ inventory upkeep ------------------------
def _get_bank(blood_bank_id) -> BloodBank:
    pk = _as_uuid(blood_bank_id, BloodBankNotFound)
    try:
        return BloodBank.objects.get(pk=pk)
    except BloodBank.DoesNotExist:
        raise BloodBankNotFound(f"Blood bank {pk} not found.") from None


@storage_guard
def inventory_alerts(blood_bank_id) -> list[InventoryAlert]:
    bank = _get_bank(blood_bank_id)
    alerts = []
    for line in bank.inventory.order_by("blood_type"):
        if line.units_available == 0:
            alerts.append(InventoryAlert(
                blood_bank_id=bank.pk,
                blood_type=line.blood_type,
                current_units=0,
                minimum_threshold=line.minimum_threshold,
                alert_type="critical_stock",
                message=f"{line.blood_type} blood type is out of stock",
            ))
        elif line.is_low:
            alerts.append(InventoryAlert(
                blood_bank_id=bank.pk,
                blood_type=line.blood_type,
                current_units=line.units_available,
                minimum_threshold=line.minimum_threshold,
                alert_type="low_stock",
                message=f"{line.blood_type} blood type is running low "
                        f"({line.units_available} units remaining)",
            ))
    return alerts


@storage_guard
def inventory_summary(blood_bank_id) -> InventorySummary:
    """
    Stock totals for one blood bank plus a normal/low/critical status per
    blood type. ``total_units`` counts reserved units as well as available ones.
    """
    bank = _get_bank(blood_bank_id)
    by_blood_type = {}
    total_reserved = total_available = low = critical = 0
    for line in bank.inventory.order_by("blood_type"):
        status = line.stock_status
        if status == "critical":
            critical += 1
        elif status == "low":
            low += 1
        total_reserved += line.units_reserved
        total_available += line.units_available
        by_blood_type[line.blood_type] = BloodTypeStock(
            available=line.units_available,
            reserved=line.units_reserved,
            threshold=line.minimum_threshold,
            status=status,
        )
    return InventorySummary(
        blood_bank_id=bank.pk,
        total_units=total_available + total_reserved,
        total_reserved=total_reserved,
        total_available=total_available,
        low_stock_count=low,
        critical_stock_count=critical,
        by_blood_type=by_blood_type,
    )


@storage_guard
def adjust_inventory(blood_bank_id, blood_type, units_available=None, units_reserved=None,
                     minimum_threshold=None) -> InventoryLine:
    """
    Operator edit of one inventory line; creates the line on first use.

    Only the figures passed are changed. Lines are never deleted, a type that
    ran out is adjusted to zero.
    """
    validate_blood_type(blood_type)
    updates = {}
    if units_available is not None:
        updates["units_available"] = _validate_count(units_available, "units_available")
    if units_reserved is not None:
        updates["units_reserved"] = _validate_count(units_reserved, "units_reserved")
    if minimum_threshold is not None:
        updates["minimum_threshold"] = _validate_count(minimum_threshold, "minimum_threshold")

    with transaction.atomic():
        bank = _get_bank(blood_bank_id)
        line, created = InventoryLine.objects.select_for_update().get_or_create(
            blood_bank=bank,
            blood_type=blood_type,
            defaults={"minimum_threshold": getattr(settings, "BLOODNET_DEFAULT_MINIMUM_THRESHOLD", 10)},
        )
        before = line.units_available
        for field, value in updates.items():
            setattr(line, field, value)
        if not created:
            line.version = F("version") + 1
        line.save()
        line.refresh_from_db()

    logger.info(
        "Inventory %s %s adjusted: available %d -> %d (version %d)",
        bank.name, blood_type, before, line.units_available, line.version,
    )
    return line
