from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from parkmitra.core.exceptions import NoAvailableSlot, NoLotsConfigured
from parkmitra.core.logging_config import get_logger
from parkmitra.db.base import ParkingLot
from parkmitra.db.session import Database
from parkmitra.services.overlap import OverlapChecker

logger = get_logger().bind(log_type="booking")


@dataclass(frozen=True)
class SlotAssignment:
    lot_id: int
    lot_name: str
    slot_number: str
    priority_order: int


def lock_lot(db: Session, lot_id: int):
    """Take the lot's write lock for the rest of the transaction.

    A no-op UPDATE is enough: PostgreSQL locks the row, SQLite the database.
    Concurrent allocations for the same lot queue here until commit.
    """
    db.query(ParkingLot).filter(ParkingLot.lot_id == lot_id).update(
        {"allocation_seq": ParkingLot.allocation_seq + 1},
        synchronize_session=False,
    )


class LotAllocator:
    def __init__(self, db: Database, overlap: OverlapChecker):
        self.db = db
        self.overlap = overlap

    @staticmethod
    def active_lots(db: Session, organization_id: int) -> list[ParkingLot]:
        return (
            db.query(ParkingLot)
            .filter(
                ParkingLot.organization_id == organization_id,
                ParkingLot.is_active.is_(True),
            )
            .order_by(ParkingLot.priority_order.asc(), ParkingLot.lot_id.asc())
            .all()
        )

    def find_slot(
        self,
        db: Session,
        organization_id: int,
        start: datetime,
        end: datetime,
        lock: bool = True,
        released_lot_id: int | None = None,
    ) -> SlotAssignment:
        """First free label in the highest-priority lot that has one.

        ``released_lot_id`` names a lot where the caller is about to free one
        slot in the same transaction, so its counter pre-filter counts it.
        """
        lots = self.active_lots(db, organization_id)
        if not lots:
            raise NoLotsConfigured(
                "No parking lots configured for this organization. Please contact the administrator.",
                organization_id=organization_id,
            )

        for lot in lots:
            available = lot.available_slots + (1 if lot.lot_id == released_lot_id else 0)
            if available <= 0:
                logger.info(f"Skipping lot {lot.lot_name} (available={lot.available_slots})")
                continue

            if lock:
                lock_lot(db, lot.lot_id)

            occupied = self.overlap.occupied_labels(db, lot.lot_id, start, end)
            for number in range(1, lot.total_slots + 1):
                label = lot.slot_label(number)
                if label not in occupied:
                    logger.info(
                        f"Allocated {label} from lot {lot.lot_name} (priority {lot.priority_order})"
                    )
                    return SlotAssignment(
                        lot_id=lot.lot_id,
                        lot_name=lot.lot_name,
                        slot_number=label,
                        priority_order=lot.priority_order,
                    )

        raise NoAvailableSlot(
            "No available slots for the requested time period. All parking lots are full.",
            organization_id=organization_id,
        )

    def preview(self, organization_id: int, start: datetime, end: datetime) -> SlotAssignment:
        """Which slot a booking for this window would get right now (no lock, no write)."""
        with self.db.session() as db:
            return self.find_slot(db, organization_id, start, end, lock=False)
