# bloodnet/exceptions.py


class BloodNetError(Exception):
    """Base class for every error raised by the matching core."""

    default_message = "Blood request operation failed."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


# -------------------- validation (rejected before any read/write) --------------------
class ValidationFailed(BloodNetError):
    default_message = "Invalid input."


class InvalidBloodType(ValidationFailed):
    default_message = "Unsupported blood type."


class InvalidQuantity(ValidationFailed):
    default_message = "Units must be a positive whole number."


class InvalidUrgency(ValidationFailed):
    default_message = "Urgency must be routine, urgent or emergency."


class InvalidCoordinates(ValidationFailed):
    default_message = "Coordinates must be a (latitude, longitude) pair within range."


# -------------------- lookups --------------------
class NotFound(BloodNetError):
    default_message = "Record not found."


class RequestNotFound(NotFound):
    default_message = "Blood request not found."


class InventoryLineNotFound(NotFound):
    default_message = "No inventory record for this blood bank and blood type."


class BloodBankNotFound(NotFound):
    default_message = "Blood bank not found."


class FacilityNotFound(NotFound):
    default_message = "Healthcare facility not found."


# -------------------- conflicts (detected inside the transaction) --------------------
class Conflict(BloodNetError):
    default_message = "The operation conflicts with the current state."


class RequestAlreadyProcessed(Conflict):
    default_message = "Request already processed."


class InsufficientInventory(Conflict):
    default_message = "Insufficient inventory available at the chosen blood bank."


# -------------------- infrastructure --------------------
class StorageUnavailable(BloodNetError):
    default_message = "Storage is temporarily unavailable; retry later."
