from fastapi import APIRouter, Depends, HTTPException

from parkmitra.core.auth_utils import Principal
from parkmitra.core.dependencies import get_current_principal, get_services
from parkmitra.core.logging_config import get_logger
from parkmitra.schemas.booking import (
    BookingCreate,
    BookingOut,
    EntryRequest,
    ExitRequest,
    ExtensionQuoteOut,
    ExtensionRequest,
    SettleRequest,
    SettlementOut,
)
from parkmitra.schemas.payment import PaymentOut
from parkmitra.services.container import ParkingServices

router = APIRouter(prefix="/bookings", tags=["Bookings"])
logger = get_logger()

STAFF_ROLES = ("admin", "watchman")


# ---------------------------------------------------------------------
# ACCESS CHECKS
# ---------------------------------------------------------------------
def load_owned_booking(booking_id: int, principal: Principal, services: ParkingServices, staff_ok: bool = True):
    booking = services.lifecycle.get_booking(booking_id)

    if booking.user_id == principal.user_id:
        return booking
    if staff_ok and principal.role in STAFF_ROLES:
        return booking

    raise HTTPException(status_code=403, detail="You can only access your own bookings")


# =====================================================================
# CREATE BOOKING
# =====================================================================
@router.post("/", response_model=BookingOut, status_code=201)
def create_booking(
    data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    booking = services.lifecycle.allocate_and_create_booking(
        user_id=principal.user_id,
        organization_id=data.organization_id,
        vehicle_number=data.vehicle_number,
        start=data.booking_start_time,
        end=data.booking_end_time,
    )
    logger.bind(log_type="booking").info(
        f"REQUEST create | User={principal.user_id} | Booking={booking.id} | Slot={booking.slot_number}"
    )
    return booking


# =====================================================================
# GET BOOKING
# =====================================================================
@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    return load_owned_booking(booking_id, principal, services)


@router.get("/{booking_id}/payments", response_model=list[PaymentOut])
def booking_payments(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services)
    return services.payments.payments_for_booking(booking_id)


# =====================================================================
# EXTENSION
# =====================================================================
@router.post("/{booking_id}/check-extension", response_model=ExtensionQuoteOut)
def check_extension(
    booking_id: int,
    data: ExtensionRequest,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services, staff_ok=False)
    return services.lifecycle.check_extension(booking_id, data.extension_hours)


@router.post("/{booking_id}/extend", response_model=BookingOut)
def extend_booking(
    booking_id: int,
    data: ExtensionRequest,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services, staff_ok=False)
    return services.lifecycle.extend_booking(booking_id, data.extension_hours)


# =====================================================================
# CANCEL
# =====================================================================
@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services)
    return services.lifecycle.cancel_booking(booking_id)


# =====================================================================
# ENTRY / EXIT (watchman desk)
# =====================================================================
@router.post("/{booking_id}/entry", response_model=BookingOut)
def mark_entry(
    booking_id: int,
    data: EntryRequest,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    if principal.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Only watchmen can mark entry")
    return services.lifecycle.mark_entry(booking_id, data.entry_time)


@router.post("/{booking_id}/exit", response_model=BookingOut)
def mark_exit(
    booking_id: int,
    data: ExitRequest,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services)
    return services.lifecycle.mark_exit(booking_id, data.exit_time, data.payment_method)


# =====================================================================
# PAY PENALTY AND REBOOK
# =====================================================================
@router.post("/{booking_id}/settle-overstay", response_model=SettlementOut)
def settle_overstay(
    booking_id: int,
    data: SettleRequest,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    load_owned_booking(booking_id, principal, services, staff_ok=False)

    new_window = None
    if data.new_booking_start_time and data.new_booking_end_time:
        new_window = (data.new_booking_start_time, data.new_booking_end_time)
    elif data.new_booking_start_time or data.new_booking_end_time:
        raise HTTPException(status_code=400, detail="Both new booking times are required to rebook")

    settlement = services.lifecycle.settle_overstay_and_rebook(
        booking_id, new_window=new_window, payment_method=data.payment_method
    )

    return SettlementOut(
        booking=BookingOut.model_validate(settlement.booking),
        penalty_payment=PaymentOut.model_validate(settlement.penalty_payment),
        overstay_minutes=settlement.quote.overstay_minutes,
        overstay_hours=settlement.quote.overstay_hours,
        penalty_amount=settlement.quote.penalty_amount,
        new_booking=(
            BookingOut.model_validate(settlement.new_booking) if settlement.new_booking else None
        ),
    )
