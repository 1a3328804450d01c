from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from parkmitra.core.exceptions import DuplicateLot, InvalidLot, LotInUse
from parkmitra.core.logging_config import get_logger
from parkmitra.core.redis import AvailabilityCache
from parkmitra.db.base import Booking, ParkingLot
from parkmitra.db.session import Database
from parkmitra.models.enums import BookingStatus, OCCUPYING_STATUSES, TERMINAL_STATUSES
from parkmitra.services.ledger import SlotLedger
from parkmitra.services.lookups import get_lot, get_organization
from parkmitra.utils.clock import utcnow

logger = get_logger().bind(log_type="admin")

EDITABLE_FIELDS = {"lot_name", "lot_description", "total_slots", "priority_order", "is_active"}


class LotRegistry:
    def __init__(self, db: Database, ledger: SlotLedger, cache: AvailabilityCache | None = None):
        self.db = db
        self.ledger = ledger
        self.cache = cache or ledger.cache

    # ---------------- CREATE ----------------
    def create_lot(
        self,
        organization_id: int,
        lot_name: str,
        total_slots: int,
        lot_description: str | None = None,
        priority_order: int = 1,
    ) -> ParkingLot:
        lot_name = (lot_name or "").strip()
        if not lot_name:
            raise InvalidLot("lot_name is required")
        if total_slots is None or total_slots < 1:
            raise InvalidLot("total_slots must be at least 1")

        with self.db.session() as db:
            get_organization(db, organization_id)

            exists = db.query(ParkingLot.lot_id).filter(
                ParkingLot.organization_id == organization_id,
                ParkingLot.lot_name == lot_name,
            ).first()
            if exists:
                raise DuplicateLot(
                    f"Parking lot with name '{lot_name}' already exists for this organization"
                )

            lot = ParkingLot(
                organization_id=organization_id,
                lot_name=lot_name,
                lot_description=lot_description,
                total_slots=total_slots,
                available_slots=total_slots,
                priority_order=priority_order,
                is_active=True,
            )
            db.add(lot)
            try:
                db.flush()
            except IntegrityError:
                raise DuplicateLot(
                    f"Parking lot with name '{lot_name}' already exists for this organization"
                )

            logger.info(f"Lot Created | Org={organization_id} | {lot_name} | slots={total_slots}")
            self.cache.invalidate_after_commit(db, organization_id)
            return lot

    # ---------------- READ ----------------
    def get_lot(self, lot_id: int) -> ParkingLot:
        with self.db.session() as db:
            return get_lot(db, lot_id)

    def list_lots(self, organization_id: int, active_only: bool = True) -> list[ParkingLot]:
        with self.db.session() as db:
            query = db.query(ParkingLot).filter(ParkingLot.organization_id == organization_id)
            if active_only:
                query = query.filter(ParkingLot.is_active.is_(True))
            return query.order_by(ParkingLot.priority_order.asc(), ParkingLot.lot_id.asc()).all()

    # ---------------- UPDATE ----------------
    def update_lot(self, lot_id: int, **fields) -> ParkingLot:
        updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
        if not updates:
            raise InvalidLot("No valid fields to update")

        with self.db.session() as db:
            lot = get_lot(db, lot_id)

            if "lot_name" in updates:
                updates["lot_name"] = updates["lot_name"].strip()
                clash = db.query(ParkingLot.lot_id).filter(
                    ParkingLot.organization_id == lot.organization_id,
                    ParkingLot.lot_name == updates["lot_name"],
                    ParkingLot.lot_id != lot_id,
                ).first()
                if clash:
                    raise DuplicateLot(
                        f"Parking lot with name '{updates['lot_name']}' already exists for this organization"
                    )

            new_total = updates.pop("total_slots", None)
            if new_total is not None:
                if new_total < 1:
                    raise InvalidLot("total_slots must be at least 1")
                occupied = self._count(db, lot_id, OCCUPYING_STATUSES)
                if new_total < occupied:
                    raise InvalidLot(
                        f"Cannot shrink lot to {new_total} slots while {occupied} are occupied"
                    )

            if updates:
                updates["updated_at"] = utcnow()
                db.query(ParkingLot).filter(ParkingLot.lot_id == lot_id).update(
                    updates, synchronize_session="fetch"
                )

            if new_total is not None:
                self.ledger.recompute(db, lot_id, total_slots=new_total)

            self.cache.invalidate_after_commit(db, lot.organization_id)
            logger.info(f"Lot Updated | id={lot_id} | {sorted(fields)}")
            return get_lot(db, lot_id)

    # ---------------- DELETE ----------------
    def delete_lot(self, lot_id: int) -> bool:
        with self.db.session() as db:
            lot = get_lot(db, lot_id)

            pending = (
                db.query(func.count(Booking.id))
                .filter(
                    Booking.parking_lot_id == lot_id,
                    Booking.booking_status.notin_(TERMINAL_STATUSES),
                )
                .scalar()
            )
            if pending:
                raise LotInUse(f"Cannot delete parking lot with {pending} active booking(s)")

            # Closed bookings keep their label but lose the lot reference
            db.query(Booking).filter(Booking.parking_lot_id == lot_id).update(
                {"parking_lot_id": None}, synchronize_session=False
            )
            db.delete(lot)

            self.cache.invalidate_after_commit(db, lot.organization_id)
            logger.info(f"Lot Deleted | id={lot_id} | {lot.lot_name}")
            return True

    # ---------------- STATS ----------------
    @staticmethod
    def _count(db, lot_id: int, statuses) -> int:
        return (
            db.query(func.count(Booking.id))
            .filter(Booking.parking_lot_id == lot_id, Booking.booking_status.in_(statuses))
            .scalar()
        ) or 0

    def lot_stats(self, lot_id: int, now: datetime | None = None) -> dict:
        now = now or utcnow()
        with self.db.session() as db:
            lot = get_lot(db, lot_id)

            total_bookings = (
                db.query(func.count(Booking.id)).filter(Booking.parking_lot_id == lot_id).scalar()
            ) or 0
            occupied = self._count(db, lot_id, OCCUPYING_STATUSES)
            upcoming = (
                db.query(func.count(Booking.id))
                .filter(
                    Booking.parking_lot_id == lot_id,
                    Booking.booking_status == BookingStatus.CONFIRMED,
                    Booking.booking_start_time > now,
                )
                .scalar()
            ) or 0

        available = max(0, lot.total_slots - occupied)
        return {
            "lot_id": lot.lot_id,
            "lot_name": lot.lot_name,
            "total_slots": lot.total_slots,
            "available_slots": available,
            "cached_available_slots": lot.available_slots,
            "occupied_slots": occupied,
            "upcoming_bookings": upcoming,
            "total_bookings": total_bookings,
            "occupancy_rate": round(occupied / lot.total_slots * 100, 2) if lot.total_slots else 0.0,
            "is_active": lot.is_active,
            "priority_order": lot.priority_order,
        }

    def organization_availability(self, organization_id: int) -> dict:
        cached = self.cache.get(organization_id)
        if cached is not None:
            return cached

        with self.db.session() as db:
            get_organization(db, organization_id)

            rows = (
                db.query(
                    ParkingLot.lot_id,
                    ParkingLot.lot_name,
                    ParkingLot.total_slots,
                    func.count(Booking.id).label("occupied"),
                )
                .outerjoin(
                    Booking,
                    (Booking.parking_lot_id == ParkingLot.lot_id)
                    & Booking.booking_status.in_(OCCUPYING_STATUSES),
                )
                .filter(
                    ParkingLot.organization_id == organization_id,
                    ParkingLot.is_active.is_(True),
                )
                .group_by(
                    ParkingLot.lot_id,
                    ParkingLot.lot_name,
                    ParkingLot.total_slots,
                    ParkingLot.priority_order,
                )
                .order_by(ParkingLot.priority_order.asc(), ParkingLot.lot_id.asc())
                .all()
            )

        lots = [
            {
                "lot_id": row.lot_id,
                "lot_name": row.lot_name,
                "total_slots": row.total_slots,
                "available_slots": max(0, row.total_slots - row.occupied),
            }
            for row in rows
        ]
        total = sum(lot["total_slots"] for lot in lots)
        occupied = sum(row.occupied for row in rows)

        summary = {
            "organization_id": organization_id,
            "total_slots": total,
            "occupied_slots": occupied,
            "available_slots": max(0, total - occupied),
            "lots": lots,
        }
        self.cache.set(organization_id, summary)
        return summary
