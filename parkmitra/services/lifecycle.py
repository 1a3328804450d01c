from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from parkmitra.core.exceptions import (
    InvalidWindow,
    InvariantViolation,
    NotActive,
    NotOverstay,
    SlotConflict,
    ValidationFailed,
)
from parkmitra.core.logging_config import get_logger
from parkmitra.db.base import Booking, Organization, Payment, User
from parkmitra.db.session import Database
from parkmitra.models.enums import (
    BookingStatus,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    ensure_booking_transition,
    slot_delta,
)
from parkmitra.services.allocator import LotAllocator, SlotAssignment, lock_lot
from parkmitra.services.ledger import SlotLedger
from parkmitra.services.lookups import get_booking, get_organization, get_user
from parkmitra.services.overlap import OverlapChecker
from parkmitra.services.payments import PaymentService
from parkmitra.services.penalty import PenaltyCalculator, PenaltyQuote
from parkmitra.utils.clock import utcnow
from parkmitra.utils.pricing import calculate_booking_amount, validate_window

logger = get_logger().bind(log_type="booking")
sweep_logger = get_logger().bind(log_type="sweep")


@dataclass
class SweepResult:
    activated: int = 0
    overstayed: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ExtensionQuote:
    booking_id: int
    slot_number: str
    current_end_time: datetime
    new_end_time: datetime
    extension_hours: int
    additional_amount: float
    can_extend_same_slot: bool


@dataclass(frozen=True)
class Settlement:
    booking: Booking
    penalty_payment: Payment
    quote: PenaltyQuote
    new_booking: Booking | None = None


def normalize_vehicle_number(vehicle_number: str | None) -> str:
    cleaned = "".join((vehicle_number or "").split()).upper()
    if not cleaned:
        raise ValidationFailed("vehicle_number is required")
    return cleaned


class BookingLifecycle:
    """Creates bookings and moves them through their status lifecycle.

    Every status change is a compare-and-swap on the current status, so a
    booking already moved by a concurrent path (sweep, exit, cancel) turns the
    losing call into a no-op instead of a double ledger update.
    """

    def __init__(
        self,
        db: Database,
        ledger: SlotLedger,
        allocator: LotAllocator,
        overlap: OverlapChecker,
        penalties: PenaltyCalculator,
        payments: PaymentService,
    ):
        self.db = db
        self.ledger = ledger
        self.allocator = allocator
        self.overlap = overlap
        self.penalties = penalties
        self.payments = payments

    # ==================================================================
    # HELPERS
    # ==================================================================
    @staticmethod
    def _swap_status(
        db: Session,
        booking_id: int,
        expected: BookingStatus,
        target: BookingStatus,
        **values,
    ) -> bool:
        ensure_booking_transition(expected, target)
        values.update(booking_status=target, updated_at=utcnow())

        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.booking_status == expected)
            .update(values, synchronize_session="fetch")
        )
        return updated == 1

    def _release_or_occupy(self, db: Session, booking: Booking, delta: int):
        if not delta:
            return
        if booking.parking_lot_id is None:
            logger.warning(f"Booking {booking.id} has no parking lot; ledger untouched")
            return
        self.ledger.apply(db, booking.parking_lot_id, delta)

    def _insert_booking(
        self,
        db: Session,
        user: User,
        org: Organization,
        vehicle_number: str,
        assignment: SlotAssignment,
        start: datetime,
        end: datetime,
        hours: int,
        now: datetime,
    ) -> Booking:
        is_member = user.is_member_of(org.id)
        status = BookingStatus.CONFIRMED if start > now else BookingStatus.ACTIVE

        booking = Booking(
            user_id=user.id,
            organization_id=org.id,
            parking_lot_id=assignment.lot_id,
            vehicle_number=vehicle_number,
            slot_number=assignment.slot_number,
            booking_start_time=start,
            booking_end_time=end,
            duration_hours=hours,
            amount=calculate_booking_amount(hours, org.hourly_rate, is_member),
            payment_status=PaymentStatus.COMPLETED if is_member else PaymentStatus.PENDING,
            booking_status=status,
            created_at=now,
            updated_at=now,
        )
        db.add(booking)
        db.flush()

        # Immediate bookings occupy their slot from the start
        if status == BookingStatus.ACTIVE:
            self.ledger.apply(db, assignment.lot_id, -1)

        logger.info(
            f"Booking Created | id={booking.id} | User={user.id} | Org={org.id} "
            f"| Slot={booking.slot_number} | {start} -> {end} | {status.value} | amount={booking.amount}"
        )
        return booking

    # ==================================================================
    # CREATE
    # ==================================================================
    def allocate_and_create_booking(
        self,
        user_id: int,
        organization_id: int,
        vehicle_number: str,
        start: datetime,
        end: datetime,
        now: datetime | None = None,
    ) -> Booking:
        now = now or utcnow()
        vehicle_number = normalize_vehicle_number(vehicle_number)
        hours = validate_window(start, end, now)

        with self.db.session() as db:
            user = get_user(db, user_id)
            org = get_organization(db, organization_id, require_active=True)

            assignment = self.allocator.find_slot(db, org.id, start, end)
            return self._insert_booking(db, user, org, vehicle_number, assignment, start, end, hours, now)

    def get_booking(self, booking_id: int) -> Booking:
        with self.db.session() as db:
            return get_booking(db, booking_id)

    # ==================================================================
    # EXTENSION
    # ==================================================================
    def _extension(self, db: Session, booking: Booking, extra_hours: int) -> ExtensionQuote:
        if not extra_hours or extra_hours <= 0:
            raise InvalidWindow("extension_hours is required and must be positive")

        new_end = booking.booking_end_time + timedelta(hours=extra_hours)
        conflicts = self.overlap.conflicts(
            db,
            booking.parking_lot_id,
            booking.slot_number,
            booking.booking_start_time,
            new_end,
            organization_id=booking.organization_id,
            exclude_booking_id=booking.id,
        )

        org = get_organization(db, booking.organization_id)
        user = get_user(db, booking.user_id)

        return ExtensionQuote(
            booking_id=booking.id,
            slot_number=booking.slot_number,
            current_end_time=booking.booking_end_time,
            new_end_time=new_end,
            extension_hours=extra_hours,
            additional_amount=calculate_booking_amount(
                extra_hours, org.hourly_rate, user.is_member_of(org.id)
            ),
            can_extend_same_slot=not conflicts,
        )

    def check_extension(self, booking_id: int, extra_hours: int) -> ExtensionQuote:
        with self.db.session() as db:
            booking = get_booking(db, booking_id)
            if booking.booking_status != BookingStatus.ACTIVE:
                raise NotActive("Only active bookings can be extended")
            return self._extension(db, booking, extra_hours)

    def extend_booking(self, booking_id: int, extra_hours: int) -> Booking:
        with self.db.session() as db:
            booking = get_booking(db, booking_id)
            if booking.booking_status != BookingStatus.ACTIVE:
                raise NotActive("Only active bookings can be extended")

            if booking.parking_lot_id is not None:
                lock_lot(db, booking.parking_lot_id)

            quote = self._extension(db, booking, extra_hours)
            if not quote.can_extend_same_slot:
                raise SlotConflict(
                    "Slot is no longer available for extension. Please book a new slot.",
                    booking_id=booking_id,
                )

            updated = (
                db.query(Booking)
                .filter(Booking.id == booking_id, Booking.booking_status == BookingStatus.ACTIVE)
                .update(
                    {
                        "booking_end_time": quote.new_end_time,
                        "duration_hours": Booking.duration_hours + extra_hours,
                        "amount": Booking.amount + quote.additional_amount,
                        "updated_at": utcnow(),
                    },
                    synchronize_session="fetch",
                )
            )
            if not updated:
                raise NotActive("Booking is no longer active")

            logger.info(
                f"Booking Extended | id={booking_id} | +{extra_hours}h | until {quote.new_end_time} "
                f"| additional={quote.additional_amount}"
            )
            return get_booking(db, booking_id)

    # ==================================================================
    # CANCEL / ENTRY / EXIT
    # ==================================================================
    def cancel_booking(self, booking_id: int) -> Booking:
        with self.db.session() as db:
            for _ in range(2):
                booking = get_booking(db, booking_id)
                current = booking.booking_status

                if current.is_terminal:
                    logger.info(f"Cancel ignored | id={booking_id} already {current.value}")
                    return booking

                ensure_booking_transition(current, BookingStatus.CANCELLED)

                values = {}
                if booking.payment_status == PaymentStatus.COMPLETED and booking.amount > 0:
                    values["payment_status"] = PaymentStatus.REFUNDED

                if self._swap_status(db, booking_id, current, BookingStatus.CANCELLED, **values):
                    self._release_or_occupy(db, booking, slot_delta(current, BookingStatus.CANCELLED))
                    logger.info(f"Booking Cancelled | id={booking_id} | was {current.value}")
                    return get_booking(db, booking_id)

            return self._settled_elsewhere(db, booking_id)

    def mark_entry(self, booking_id: int, entry_time: datetime | None = None) -> Booking:
        entry_time = entry_time or utcnow()
        with self.db.session() as db:
            booking = get_booking(db, booking_id)
            if booking.booking_status.is_terminal:
                raise NotActive(f"Booking is already {booking.booking_status.value}")

            updated = (
                db.query(Booking)
                .filter(Booking.id == booking_id, Booking.booking_status.notin_(
                    [BookingStatus.COMPLETED, BookingStatus.CANCELLED]
                ))
                .update({"entry_time": entry_time, "updated_at": utcnow()}, synchronize_session="fetch")
            )
            if not updated:
                raise NotActive("Booking was closed before entry could be recorded")

            logger.info(f"Entry Marked | id={booking_id} | {entry_time}")
            return get_booking(db, booking_id)

    def mark_exit(
        self,
        booking_id: int,
        exit_time: datetime | None = None,
        payment_method: str = "cash",
    ) -> Booking:
        """Complete an occupying booking and release its slot.

        Leaving after the booked end settles the overstay penalty at
        ``exit_time``: ``amount`` grows by the penalty and a pending penalty
        payment is recorded for collection.
        """
        exit_time = exit_time or utcnow()

        with self.db.session() as db:
            for _ in range(2):
                booking = get_booking(db, booking_id)
                current = booking.booking_status

                if current.is_terminal:
                    logger.info(f"Exit ignored | id={booking_id} already {current.value}")
                    return booking

                if current == BookingStatus.CONFIRMED:
                    raise NotActive("Booking has not started yet")

                values = {"exit_time": exit_time}
                quote = None
                if exit_time > booking.booking_end_time:
                    org = get_organization(db, booking.organization_id)
                    quote = self.penalties.quote(booking.booking_end_time, exit_time, org.hourly_rate)
                    values.update(
                        overstay_minutes=quote.overstay_minutes,
                        penalty_amount=quote.penalty_amount,
                        amount=Booking.amount + quote.penalty_amount,
                    )

                if not self._swap_status(db, booking_id, current, BookingStatus.COMPLETED, **values):
                    continue

                self._release_or_occupy(db, booking, slot_delta(current, BookingStatus.COMPLETED))

                if quote is not None:
                    self.payments.create_payment(
                        db,
                        booking_id,
                        quote.penalty_amount,
                        payment_method,
                        payment_type=PaymentType.PENALTY,
                        status=PaymentRecordStatus.PENDING,
                    )

                logger.info(
                    f"Exit Marked | id={booking_id} | was {current.value} | {exit_time} "
                    f"| penalty={quote.penalty_amount if quote else 0}"
                )
                return get_booking(db, booking_id)

            return self._settled_elsewhere(db, booking_id)

    @staticmethod
    def _settled_elsewhere(db: Session, booking_id: int) -> Booking:
        booking = get_booking(db, booking_id)
        if booking.booking_status.is_terminal:
            return booking
        raise SlotConflict("Booking changed concurrently; retry", booking_id=booking_id)

    # ==================================================================
    # SWEEP
    # ==================================================================
    def sweep_lifecycle(self, now: datetime | None = None) -> SweepResult:
        """Activate started bookings, flag overdue ones as overstay.

        Safe to run repeatedly and concurrently: each booking moves in its own
        transaction behind a status compare-and-swap.
        """
        now = now or utcnow()
        result = SweepResult()

        with self.db.session() as db:
            to_activate = [
                row.id
                for row in db.query(Booking.id)
                .filter(
                    Booking.booking_status == BookingStatus.CONFIRMED,
                    Booking.booking_start_time <= now,
                )
                .order_by(Booking.booking_start_time, Booking.id)
                .all()
            ]

        for booking_id in to_activate:
            try:
                with self.db.session() as db:
                    if not self._swap_status(db, booking_id, BookingStatus.CONFIRMED, BookingStatus.ACTIVE):
                        continue
                    booking = get_booking(db, booking_id)
                    self._release_or_occupy(db, booking, -1)
                result.activated += 1
            except InvariantViolation as e:
                # Rolled back: the booking stays confirmed until the lot is reconciled
                result.failed += 1
                sweep_logger.error(f"Activation of booking {booking_id} aborted: {e.detail}")

        with self.db.session() as db:
            overdue = [
                (row.id, row.booking_end_time, row.organization_id)
                for row in db.query(Booking.id, Booking.booking_end_time, Booking.organization_id)
                .filter(
                    Booking.booking_status == BookingStatus.ACTIVE,
                    Booking.booking_end_time < now,
                )
                .order_by(Booking.booking_end_time, Booking.id)
                .all()
            ]

        for booking_id, end_time, organization_id in overdue:
            with self.db.session() as db:
                org = get_organization(db, organization_id)
                quote = self.penalties.quote(end_time, now, org.hourly_rate)
                if self._swap_status(
                    db,
                    booking_id,
                    BookingStatus.ACTIVE,
                    BookingStatus.OVERSTAY,
                    overstay_minutes=quote.overstay_minutes,
                    penalty_amount=quote.penalty_amount,
                ):
                    result.overstayed += 1

        sweep_logger.info(
            f"Sweep @ {now} | activated={result.activated} | overstayed={result.overstayed} "
            f"| failed={result.failed}"
        )
        return result

    def recalculate_penalties(self, now: datetime | None = None) -> int:
        """Refresh overstay minutes and running penalty of every overstay booking."""
        now = now or utcnow()
        updated_count = 0

        with self.db.session() as db:
            rows = (
                db.query(Booking.id, Booking.booking_end_time, Organization.hourly_rate)
                .join(Organization, Organization.id == Booking.organization_id)
                .filter(Booking.booking_status == BookingStatus.OVERSTAY)
                .all()
            )

            for row in rows:
                try:
                    quote = self.penalties.quote(row.booking_end_time, now, row.hourly_rate)
                except NotOverstay:
                    continue

                updated_count += (
                    db.query(Booking)
                    .filter(Booking.id == row.id, Booking.booking_status == BookingStatus.OVERSTAY)
                    .update(
                        {
                            "overstay_minutes": quote.overstay_minutes,
                            "penalty_amount": quote.penalty_amount,
                            "updated_at": utcnow(),
                        },
                        synchronize_session=False,
                    )
                )

        sweep_logger.info(f"Penalties recalculated @ {now} | overstay={len(rows)} | updated={updated_count}")
        return updated_count

    # ==================================================================
    # PAY PENALTY AND REBOOK
    # ==================================================================
    def settle_overstay_and_rebook(
        self,
        booking_id: int,
        new_window: tuple[datetime, datetime] | None = None,
        payment_method: str = "upi",
        now: datetime | None = None,
    ) -> Settlement:
        """Pay the overstay penalty, release the slot and optionally rebook.

        The follow-up reservation is validated and allocated before the old
        booking is touched; everything commits together or not at all.
        """
        now = now or utcnow()

        with self.db.session() as db:
            booking = get_booking(db, booking_id)
            current = booking.booking_status
            if current not in (BookingStatus.OVERSTAY, BookingStatus.ACTIVE):
                raise NotOverstay("This booking is not in overstay status")

            org = get_organization(db, booking.organization_id)
            quote = self.penalties.quote(booking.booking_end_time, now, org.hourly_rate)

            assignment = None
            if new_window is not None:
                new_start, new_end = new_window
                hours = validate_window(new_start, new_end, now)
                assignment = self.allocator.find_slot(
                    db, org.id, new_start, new_end, released_lot_id=booking.parking_lot_id
                )

            settled = self._swap_status(
                db,
                booking_id,
                current,
                BookingStatus.COMPLETED,
                exit_time=now,
                overstay_minutes=quote.overstay_minutes,
                penalty_amount=quote.penalty_amount,
                amount=Booking.amount + quote.penalty_amount,
                payment_status=PaymentStatus.COMPLETED,
            )
            if not settled:
                raise SlotConflict("Booking changed while settling; retry", booking_id=booking_id)

            self._release_or_occupy(db, booking, slot_delta(current, BookingStatus.COMPLETED))

            payment = self.payments.create_payment(
                db,
                booking_id,
                quote.penalty_amount,
                payment_method,
                payment_type=PaymentType.PENALTY,
                status=PaymentRecordStatus.COMPLETED,
            )

            new_booking = None
            if assignment is not None:
                user = get_user(db, booking.user_id)
                new_booking = self._insert_booking(
                    db, user, org, booking.vehicle_number, assignment, new_start, new_end, hours, now
                )

            logger.bind(log_type="payment").info(
                f"Penalty Settled | Booking={booking_id} | {quote.overstay_minutes} min "
                f"| {quote.penalty_amount} | rebooked={new_booking.id if new_booking else None}"
            )
            return Settlement(
                booking=get_booking(db, booking_id),
                penalty_payment=payment,
                quote=quote,
                new_booking=new_booking,
            )
