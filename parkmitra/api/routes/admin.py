from typing import Optional

from fastapi import APIRouter, Depends

from parkmitra.core.auth_utils import Principal
from parkmitra.core.dependencies import get_services, require_roles
from parkmitra.core.logging_config import get_logger
from parkmitra.schemas.booking import SweepOut
from parkmitra.services.container import ParkingServices

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = get_logger().bind(log_type="admin")


# ============================
# LIFECYCLE SWEEP
# ============================
@router.post("/sweep", response_model=SweepOut)
def run_sweep(
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    result = services.lifecycle.sweep_lifecycle()
    logger.info(f"Manual sweep by admin {principal.user_id} | {result}")
    return result


# ============================
# PENALTY RECALCULATION
# ============================
@router.post("/penalties/recalculate")
def recalculate_penalties(
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    updated = services.lifecycle.recalculate_penalties()
    return {"updated": updated}


# ============================
# LEDGER RECONCILIATION
# ============================
@router.post("/reconcile")
def reconcile(
    organization_id: Optional[int] = None,
    principal: Principal = Depends(require_roles("admin")),
    services: ParkingServices = Depends(get_services),
):
    lots = services.ledger.reconcile_all(organization_id)
    logger.info(f"Reconcile by admin {principal.user_id} | lots={len(lots)}")
    return {"lots": {str(lot_id): available for lot_id, available in lots.items()}}
