# bloodnet/compat.py
from .exceptions import InvalidBloodType

BLOOD_TYPES = [
    ("A+", "A+"), ("A-", "A-"),
    ("B+", "B+"), ("B-", "B-"),
    ("AB+", "AB+"), ("AB-", "AB-"),
    ("O+", "O+"), ("O-", "O-"),
]

# Red cell donors accepted by each recipient type, in order of preference.
# Key: requested (recipient) type. Value: donor types, exact match first.
DONORS_BY_RECIPIENT = {
    "O-":  ["O-"],
    "O+":  ["O+", "O-"],
    "A-":  ["A-", "O-"],
    "A+":  ["A+", "A-", "O+", "O-"],
    "B-":  ["B-", "O-"],
    "B+":  ["B+", "B-", "O+", "O-"],
    "AB-": ["AB-", "A-", "B-", "O-"],
    "AB+": ["AB+", "AB-", "A+", "A-", "B+", "B-", "O+", "O-"],
}


def validate_blood_type(blood_type) -> str:
    if not isinstance(blood_type, str) or blood_type not in DONORS_BY_RECIPIENT:
        raise InvalidBloodType(f"Unsupported blood type: {blood_type!r}", blood_type=blood_type)
    return blood_type


def compatible_types(requested_type: str) -> list[str]:
    """
    Donor types that may be transfused into a recipient of ``requested_type``.

    The first element is always ``requested_type`` itself. Raises
    ``InvalidBloodType`` for anything outside the eight ABO/Rh types.
    """
    validate_blood_type(requested_type)
    return list(DONORS_BY_RECIPIENT[requested_type])


def is_compatible(requested_type: str, donor_type: str) -> bool:
    return donor_type in compatible_types(requested_type)
