from datetime import datetime

from sqlalchemy.orm import Session

from parkmitra.db.base import Booking, ParkingLot
from parkmitra.db.session import Database
from parkmitra.models.enums import TERMINAL_STATUSES
from parkmitra.services.lookups import get_lot


def intervals_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open ``[s, e)``: touching endpoints do not overlap."""
    return s1 < e2 and s2 < e1


class OverlapChecker:
    """Answers "is this slot label free for this window?" against live bookings."""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _overlapping(
        db: Session,
        lot_id: int | None,
        start: datetime,
        end: datetime,
        organization_id: int | None = None,
        exclude_booking_id: int | None = None,
    ):
        query = db.query(Booking).filter(
            Booking.booking_status.notin_(TERMINAL_STATUSES),
            Booking.booking_start_time < end,
            Booking.booking_end_time > start,
        )

        if lot_id is None:
            # Legacy bookings: labels are scoped to the organization instead
            query = query.filter(
                Booking.parking_lot_id.is_(None),
                Booking.organization_id == organization_id,
            )
        else:
            query = query.filter(Booking.parking_lot_id == lot_id)

        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)

        return query

    def occupied_labels(self, db: Session, lot_id: int, start: datetime, end: datetime) -> set[str]:
        rows = (
            self._overlapping(db, lot_id, start, end)
            .with_entities(Booking.slot_number)
            .distinct()
            .all()
        )
        return {row.slot_number for row in rows}

    def conflicts(
        self,
        db: Session,
        lot_id: int | None,
        slot_number: str,
        start: datetime,
        end: datetime,
        organization_id: int | None = None,
        exclude_booking_id: int | None = None,
    ) -> list[Booking]:
        return (
            self._overlapping(db, lot_id, start, end, organization_id, exclude_booking_id)
            .filter(Booking.slot_number == slot_number)
            .order_by(Booking.booking_start_time)
            .all()
        )

    # ------------------------------------------------------------------
    # STANDALONE QUERIES
    # ------------------------------------------------------------------
    def is_slot_free(
        self,
        lot_id: int,
        slot_number: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: int | None = None,
    ) -> bool:
        with self.db.session() as db:
            return not self.conflicts(
                db, lot_id, slot_number, start, end, exclude_booking_id=exclude_booking_id
            )

    def free_labels(self, lot_id: int, start: datetime, end: datetime) -> list[str]:
        """Every label of the lot that is free for the whole window, in slot order."""
        with self.db.session() as db:
            lot: ParkingLot = get_lot(db, lot_id)
            occupied = self.occupied_labels(db, lot_id, start, end)
            return [
                lot.slot_label(n)
                for n in range(1, lot.total_slots + 1)
                if lot.slot_label(n) not in occupied
            ]
