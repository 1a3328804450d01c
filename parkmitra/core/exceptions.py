class ParkingError(Exception):
    """Base error for every booking-engine failure.

    Each subclass carries the HTTP status the API layer renders it with and a
    short machine-readable code.
    """

    status_code = 400
    default_detail = "Parking operation failed."
    default_code = "parking_error"

    def __init__(self, detail: str | None = None, **context):
        self.detail = detail or self.default_detail
        self.code = self.default_code
        self.context = context
        super().__init__(self.detail)


class NotFound(ParkingError):
    status_code = 404
    default_detail = "Requested record was not found."
    default_code = "not_found"


class InvalidWindow(ParkingError):
    status_code = 400
    default_detail = "Invalid booking window."
    default_code = "invalid_window"


class ValidationFailed(ParkingError):
    status_code = 400
    default_detail = "Request data is invalid."
    default_code = "validation_failed"


class InvalidLot(ParkingError):
    status_code = 400
    default_detail = "Invalid parking lot definition."
    default_code = "invalid_lot"


class NoLotsConfigured(ParkingError):
    status_code = 409
    default_detail = "No parking lots configured for this organization."
    default_code = "no_lots_configured"


class NoAvailableSlot(ParkingError):
    status_code = 409
    default_detail = "No available slots for the requested time period."
    default_code = "no_available_slot"


class SlotConflict(ParkingError):
    status_code = 409
    default_detail = "Slot is already taken for the requested time period."
    default_code = "slot_conflict"


class NotActive(ParkingError):
    status_code = 409
    default_detail = "Booking is not active."
    default_code = "not_active"


class NotOverstay(ParkingError):
    status_code = 400
    default_detail = "Booking has not overstayed."
    default_code = "not_overstay"


class InvalidTransition(ParkingError):
    status_code = 409
    default_detail = "Status transition is not allowed."
    default_code = "invalid_transition"


class DuplicateLot(ParkingError):
    status_code = 409
    default_detail = "A parking lot with this name already exists."
    default_code = "duplicate_lot"


class LotInUse(ParkingError):
    status_code = 409
    default_detail = "Cannot delete parking lot with active bookings."
    default_code = "lot_in_use"


class InvariantViolation(ParkingError):
    status_code = 500
    default_detail = "Slot ledger invariant violated."
    default_code = "invariant_violation"
