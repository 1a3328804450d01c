from sqlalchemy import func
from sqlalchemy.orm import Session

from parkmitra.core.exceptions import InvariantViolation, NotFound
from parkmitra.core.logging_config import get_logger
from parkmitra.core.redis import AvailabilityCache
from parkmitra.db.base import Booking, ParkingLot
from parkmitra.db.session import Database
from parkmitra.models.enums import OCCUPYING_STATUSES
from parkmitra.services.lookups import get_lot
from parkmitra.utils.clock import utcnow

logger = get_logger().bind(log_type="ledger")


class SlotLedger:
    """Per-lot ``available_slots`` counter.

    The counter is a cache for dashboards. It changes only through
    :meth:`apply` (a single conditional UPDATE) and :meth:`recompute`
    (the canonical rebuild from live bookings).
    """

    def __init__(self, db: Database, cache: AvailabilityCache | None = None):
        self.db = db
        self.cache = cache or AvailabilityCache()

    # ------------------------------------------------------------------
    # ATOMIC UPDATE
    # ------------------------------------------------------------------
    def update_available_slots(self, lot_id: int, delta: int) -> int:
        with self.db.session() as db:
            return self.apply(db, lot_id, delta)

    def apply(self, db: Session, lot_id: int, delta: int) -> int:
        new_value = ParkingLot.available_slots + delta

        updated = (
            db.query(ParkingLot)
            .filter(
                ParkingLot.lot_id == lot_id,
                new_value >= 0,
                new_value <= ParkingLot.total_slots,
            )
            .update(
                {"available_slots": new_value, "updated_at": utcnow()},
                synchronize_session="fetch",
            )
        )

        lot = db.query(ParkingLot).filter(ParkingLot.lot_id == lot_id).populate_existing().first()
        if lot is None:
            raise NotFound("Parking lot not found", lot_id=lot_id)

        if updated != 1:
            logger.error(
                f"INVARIANT VIOLATION | Lot={lot_id} | available={lot.available_slots} "
                f"| total={lot.total_slots} | delta={delta:+d}"
            )
            raise InvariantViolation(
                f"Applying {delta:+d} to lot {lot_id} would leave available_slots outside "
                f"[0, {lot.total_slots}] (currently {lot.available_slots})",
                lot_id=lot_id,
                delta=delta,
            )

        logger.info(f"Lot={lot_id} | delta={delta:+d} | available={lot.available_slots}/{lot.total_slots}")
        self.cache.invalidate_after_commit(db, lot.organization_id)
        return lot.available_slots

    # ------------------------------------------------------------------
    # RECONCILIATION
    # ------------------------------------------------------------------
    def recompute_availability(self, lot_id: int) -> int:
        with self.db.session() as db:
            return self.recompute(db, lot_id)

    def recompute(self, db: Session, lot_id: int, total_slots: int | None = None) -> int:
        """Rebuild ``available_slots`` from bookings that physically occupy the lot.

        ``total_slots`` resizes the lot in the same statement.
        """
        lot = get_lot(db, lot_id)
        total = lot.total_slots if total_slots is None else total_slots

        occupied = (
            db.query(func.count(Booking.id))
            .filter(
                Booking.parking_lot_id == lot_id,
                Booking.booking_status.in_(OCCUPYING_STATUSES),
            )
            .scalar()
        ) or 0

        correct = total - occupied
        if correct < 0:
            logger.error(
                f"Lot={lot_id} has {occupied} occupying bookings but only {total} slots"
            )
            correct = 0

        if correct != lot.available_slots or total != lot.total_slots:
            logger.warning(
                f"Reconciled lot={lot_id} | available {lot.available_slots} -> {correct} "
                f"| total {lot.total_slots} -> {total} | occupied={occupied}"
            )
            db.query(ParkingLot).filter(ParkingLot.lot_id == lot_id).update(
                {"total_slots": total, "available_slots": correct, "updated_at": utcnow()},
                synchronize_session="fetch",
            )
            self.cache.invalidate_after_commit(db, lot.organization_id)

        return correct

    def reconcile_all(self, organization_id: int | None = None) -> dict[int, int]:
        with self.db.session() as db:
            query = db.query(ParkingLot.lot_id)
            if organization_id is not None:
                query = query.filter(ParkingLot.organization_id == organization_id)
            lot_ids = [row.lot_id for row in query.order_by(ParkingLot.lot_id).all()]

            results = {lot_id: self.recompute(db, lot_id) for lot_id in lot_ids}

        logger.info(f"Reconciled {len(results)} lot(s)")
        return results
