from typing import List

from fastapi import APIRouter, Depends

from parkmitra.core.auth_utils import Principal
from parkmitra.core.dependencies import get_current_principal, get_services, require_roles
from parkmitra.core.logging_config import get_logger
from parkmitra.schemas.parking_lot import LotCreate, LotOut, LotUpdate, OrganizationAvailability
from parkmitra.services.container import ParkingServices

router = APIRouter(tags=["Parking Lots"])
logger = get_logger()


# --------------------------------------------------
# LIST LOTS OF AN ORGANIZATION
# --------------------------------------------------
@router.get("/organizations/{organization_id}/lots", response_model=List[LotOut])
def list_lots(
    organization_id: int,
    include_inactive: bool = False,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    return services.lots.list_lots(organization_id, active_only=not include_inactive)


# --------------------------------------------------
# CREATE LOT (admin)
# --------------------------------------------------
@router.post("/organizations/{organization_id}/lots", response_model=LotOut, status_code=201)
def create_lot(
    organization_id: int,
    data: LotCreate,
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    lot = services.lots.create_lot(
        organization_id,
        data.lot_name,
        data.total_slots,
        lot_description=data.lot_description,
        priority_order=data.priority_order,
    )
    logger.bind(log_type="admin").info(f"Admin {principal.user_id} created lot {lot.lot_id}")
    return lot


# --------------------------------------------------
# UPDATE LOT (admin)
# --------------------------------------------------
@router.patch("/lots/{lot_id}", response_model=LotOut)
def update_lot(
    lot_id: int,
    data: LotUpdate,
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    return services.lots.update_lot(lot_id, **data.model_dump(exclude_unset=True))


# --------------------------------------------------
# DELETE LOT (admin)
# --------------------------------------------------
@router.delete("/lots/{lot_id}")
def delete_lot(
    lot_id: int,
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    services.lots.delete_lot(lot_id)
    return {"message": "Parking lot deleted successfully"}


# --------------------------------------------------
# STATS & AVAILABILITY
# --------------------------------------------------
@router.get("/lots/{lot_id}/stats")
def lot_stats(
    lot_id: int,
    principal: Principal = Depends(require_roles("admin", "watchman")),
    services: ParkingServices = Depends(get_services),
):
    return services.lots.lot_stats(lot_id)


@router.get("/organizations/{organization_id}/availability", response_model=OrganizationAvailability)
def organization_availability(
    organization_id: int,
    principal: Principal = Depends(get_current_principal),
    services: ParkingServices = Depends(get_services),
):
    return services.lots.organization_availability(organization_id)
