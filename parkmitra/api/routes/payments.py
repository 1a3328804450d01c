from fastapi import APIRouter, Depends, HTTPException

from parkmitra.core.auth_utils import Principal
from parkmitra.core.dependencies import get_current_principal, get_services, require_roles
from parkmitra.models.enums import PaymentRecordStatus
from parkmitra.schemas.payment import PaymentCreate, PaymentOut, RevenueOut
from parkmitra.services.container import ParkingServices

router = APIRouter(tags=["Payments"])


@router.post("/payments", response_model=PaymentOut, status_code=201)
def record_payment(
    data: PaymentCreate,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    booking = services.lifecycle.get_booking(data.booking_id)
    is_staff = principal.role in ("admin", "watchman")

    if booking.user_id != principal.user_id and not is_staff:
        raise HTTPException(status_code=403, detail="You can only pay for your own bookings")

    # Online payments stay pending until the gateway confirms them
    status = PaymentRecordStatus.COMPLETED if is_staff else PaymentRecordStatus.PENDING

    return services.payments.record_payment(
        booking_id=data.booking_id,
        amount=data.amount,
        method=data.payment_method,
        payment_type=data.payment_type,
        watchman_id=principal.user_id if principal.role == "watchman" else None,
        status=status,
        transaction_id=data.transaction_id,
    )


@router.post("/payments/{payment_id}/complete", response_model=PaymentOut)
def complete_payment(
    payment_id: int,
    principal: Principal = Depends(require_roles("admin", "watchman")),
    services: ParkingServices = Depends(get_services),
):
    return services.payments.complete_payment(payment_id)


@router.post("/payments/{payment_id}/fail", response_model=PaymentOut)
def fail_payment(
    payment_id: int,
    principal: Principal = Depends(require_roles("admin", "watchman")),
    services: ParkingServices = Depends(get_services),
):
    return services.payments.fail_payment(payment_id)


@router.get("/organizations/{organization_id}/revenue", response_model=RevenueOut)
def revenue(
    organization_id: int,
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    return services.payments.revenue_summary(organization_id)
