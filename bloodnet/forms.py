# bloodnet/forms.py
from django import forms
from django.conf import settings
from django.utils import timezone

from .compat import BLOOD_TYPES
from .models import BloodRequest, HealthcareFacility

PATIENT_GENDER_CHOICES = [("male", "Male"), ("female", "Female"), ("other", "Other")]


# ==================== Request intake ====================
class BloodRequestForm(forms.Form):
    facility = forms.ModelChoiceField(queryset=HealthcareFacility.objects.filter(is_active=True),
                                      label="Requesting facility")
    blood_type = forms.ChoiceField(choices=BLOOD_TYPES, label="Requested blood type",
                                   error_messages={"invalid_choice": "Please select a valid blood type."})
    units_requested = forms.IntegerField(min_value=1, label="Units requested")
    urgency = forms.ChoiceField(choices=BloodRequest.Urgency.choices, label="Urgency",
                                error_messages={"invalid_choice": "Please select a valid urgency level."})
    required_by = forms.DateTimeField(label="Required by")
    patient_info = forms.JSONField(label="Patient info", required=False)
    notes = forms.CharField(label="Notes", required=False, max_length=1000)

    def clean_units_requested(self):
        units = self.cleaned_data["units_requested"]
        max_units = getattr(settings, "BLOODNET_MAX_UNITS_PER_REQUEST", 50)
        if units > max_units:
            raise forms.ValidationError(f"Cannot request more than {max_units} units at once.")
        return units

    def clean_required_by(self):
        required_by = self.cleaned_data["required_by"]
        if required_by <= timezone.now():
            raise forms.ValidationError("Required date must be in the future.")
        return required_by

    def clean_patient_info(self):
        info = self.cleaned_data.get("patient_info")
        if info in (None, ""):
            return None
        if not isinstance(info, dict):
            raise forms.ValidationError("Patient info must be an object.")
        age = info.get("age")
        if age is not None and (not isinstance(age, int) or not 0 <= age <= 120):
            raise forms.ValidationError("Patient age must be between 0 and 120.")
        gender = info.get("gender")
        if gender is not None and gender not in dict(PATIENT_GENDER_CHOICES):
            raise forms.ValidationError("Patient gender must be male, female or other.")
        return info


# ==================== Allocation ====================
class FulfillmentForm(forms.Form):
    blood_bank_id = forms.UUIDField(label="Blood bank")
    units_provided = forms.IntegerField(min_value=1, label="Units provided")
    notes = forms.CharField(label="Notes", required=False, max_length=1000)


class CancelForm(forms.Form):
    reason = forms.CharField(label="Reason", max_length=1000)

    def clean_reason(self):
        reason = self.cleaned_data["reason"].strip()
        if not reason:
            raise forms.ValidationError("A cancellation reason is required.")
        return reason


class MatchQueryForm(forms.Form):
    blood_type = forms.ChoiceField(choices=BLOOD_TYPES, label="Blood type")
    units = forms.IntegerField(min_value=1, label="Units needed")
    lat = forms.FloatField(min_value=-90, max_value=90, required=False, label="Latitude")
    lng = forms.FloatField(min_value=-180, max_value=180, required=False, label="Longitude")

    def clean(self):
        data = super().clean()
        # both or neither
        if (data.get("lat") is None) != (data.get("lng") is None):
            raise forms.ValidationError("Latitude and longitude must be given together.")
        return data

    def coordinates(self):
        lat, lng = self.cleaned_data.get("lat"), self.cleaned_data.get("lng")
        if lat is None or lng is None:
            return None
        return (lat, lng)


# ==================== Inventory upkeep ====================
class InventoryAdjustForm(forms.Form):
    blood_type = forms.ChoiceField(choices=BLOOD_TYPES, label="Blood type")
    units_available = forms.IntegerField(min_value=0, required=False, label="Units available")
    units_reserved = forms.IntegerField(min_value=0, required=False, label="Units reserved")
    minimum_threshold = forms.IntegerField(min_value=0, required=False, label="Minimum threshold")

    def clean(self):
        data = super().clean()
        figures = ("units_available", "units_reserved", "minimum_threshold")
        if all(data.get(name) is None for name in figures):
            raise forms.ValidationError("Provide at least one inventory figure to change.")
        return data


# ==================== Listing ====================
class RequestListForm(forms.Form):
    facility_id = forms.UUIDField(required=False, label="Facility")
    blood_type = forms.ChoiceField(choices=BLOOD_TYPES, required=False, label="Blood type")
    urgency = forms.ChoiceField(choices=BloodRequest.Urgency.choices, required=False, label="Urgency")
    status = forms.ChoiceField(
        choices=[*BloodRequest.Status.choices, (BloodRequest.EXPIRED, "Expired")],
        required=False, label="Status",
    )
    date_from = forms.DateTimeField(required=False, label="Requested from")
    date_to = forms.DateTimeField(required=False, label="Requested until")
    page = forms.IntegerField(min_value=1, required=False, label="Page")
    per_page = forms.IntegerField(min_value=1, max_value=100, required=False, label="Per page")

    def clean(self):
        data = super().clean()
        date_from, date_to = data.get("date_from"), data.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise forms.ValidationError("The start date must not be after the end date.")
        return data

    def filters(self):
        """Cleaned filters with blanks dropped, ready for ``services.list_requests``."""
        return {name: value for name, value in self.cleaned_data.items() if value not in (None, "")}
