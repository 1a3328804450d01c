import time
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from parkmitra.core.exceptions import NotFound, ValidationFailed
from parkmitra.core.logging_config import get_logger
from parkmitra.db.base import Booking, Payment
from parkmitra.db.session import Database
from parkmitra.models.enums import (
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    ensure_payment_transition,
)
from parkmitra.services.lookups import get_booking, get_organization
from parkmitra.utils.clock import utcnow

logger = get_logger().bind(log_type="payment")

METHOD_NAMES = {
    "upi": "UPI",
    "card": "Credit Card",
    "creditcard": "Credit Card",
    "debitcard": "Debit Card",
    "netbanking": "Net Banking",
    "wallet": "Wallet",
    "cash": "Cash",
}


def normalize_method(method: str | None) -> str:
    if not method:
        return "UPI"
    key = method.replace(" ", "").replace("_", "").lower()
    return METHOD_NAMES.get(key, method)


def generate_transaction_id(payment_type: PaymentType) -> str:
    prefix = "TXN-PENALTY" if payment_type == PaymentType.PENALTY else "TXN"
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


class PaymentService:
    def __init__(self, db: Database):
        self.db = db

    def create_payment(
        self,
        db: Session,
        booking_id: int,
        amount: float,
        method: str | None,
        payment_type: PaymentType = PaymentType.BOOKING,
        status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED,
        watchman_id: int | None = None,
        transaction_id: str | None = None,
    ) -> Payment:
        if amount < 0:
            raise ValidationFailed("Payment amount cannot be negative")

        payment = Payment(
            booking_id=booking_id,
            amount=round(amount, 2),
            payment_method=normalize_method(method),
            transaction_id=transaction_id or generate_transaction_id(payment_type),
            payment_status=status,
            payment_type=payment_type,
            watchman_id=watchman_id,
            payment_timestamp=utcnow(),
        )
        db.add(payment)
        db.flush()

        # Penalty payments never touch the booking's own payment status
        if payment_type == PaymentType.BOOKING and status == PaymentRecordStatus.COMPLETED:
            self._mark_booking_paid(db, booking_id)

        logger.info(
            f"Payment {payment.transaction_id} | Booking={booking_id} | {payment_type.value} "
            f"| {payment.payment_method} | {payment.amount} | {status.value}"
        )
        return payment

    @staticmethod
    def _mark_booking_paid(db: Session, booking_id: int):
        db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.payment_status == PaymentStatus.PENDING,
        ).update(
            {"payment_status": PaymentStatus.COMPLETED, "updated_at": utcnow()},
            synchronize_session="fetch",
        )

    def record_payment(
        self,
        booking_id: int,
        amount: float,
        method: str | None,
        payment_type: PaymentType = PaymentType.BOOKING,
        watchman_id: int | None = None,
        status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED,
        transaction_id: str | None = None,
    ) -> Payment:
        with self.db.session() as db:
            get_booking(db, booking_id)
            return self.create_payment(
                db, booking_id, amount, method, payment_type, status, watchman_id, transaction_id
            )

    # ------------------------------------------------------------------
    # STATUS TRANSITIONS (pending -> completed | failed)
    # ------------------------------------------------------------------
    def complete_payment(self, payment_id: int) -> Payment:
        return self._transition(payment_id, PaymentRecordStatus.COMPLETED)

    def fail_payment(self, payment_id: int) -> Payment:
        return self._transition(payment_id, PaymentRecordStatus.FAILED)

    def _transition(self, payment_id: int, target: PaymentRecordStatus) -> Payment:
        with self.db.session() as db:
            payment = self._get(db, payment_id)
            ensure_payment_transition(payment.payment_status, target)

            updated = db.query(Payment).filter(
                Payment.id == payment_id,
                Payment.payment_status == payment.payment_status,
            ).update({"payment_status": target}, synchronize_session="fetch")

            payment = self._get(db, payment_id)
            if not updated:
                # Someone else moved it first; same target is a no-op
                if payment.payment_status == target:
                    return payment
                ensure_payment_transition(payment.payment_status, target)

            if payment.payment_type == PaymentType.BOOKING and target == PaymentRecordStatus.COMPLETED:
                self._mark_booking_paid(db, payment.booking_id)

            logger.info(f"Payment {payment.transaction_id} -> {target.value}")
            return payment

    @staticmethod
    def _get(db: Session, payment_id: int) -> Payment:
        payment = db.query(Payment).filter(Payment.id == payment_id).populate_existing().first()
        if not payment:
            raise NotFound("Payment not found", payment_id=payment_id)
        return payment

    # ------------------------------------------------------------------
    # REPORTING
    # ------------------------------------------------------------------
    def payments_for_booking(self, booking_id: int) -> list[Payment]:
        with self.db.session() as db:
            return (
                db.query(Payment)
                .filter(Payment.booking_id == booking_id)
                .order_by(Payment.id)
                .all()
            )

    def revenue_summary(self, organization_id: int) -> dict:
        """Booking and penalty revenue reported separately."""
        with self.db.session() as db:
            get_organization(db, organization_id)

            rows = (
                db.query(
                    Payment.payment_type,
                    Payment.payment_status,
                    func.coalesce(func.sum(Payment.amount), 0).label("total"),
                    func.count(Payment.id).label("count"),
                )
                .join(Booking, Booking.id == Payment.booking_id)
                .filter(Booking.organization_id == organization_id)
                .group_by(Payment.payment_type, Payment.payment_status)
                .all()
            )

        summary = {
            "organization_id": organization_id,
            "booking_revenue": 0.0,
            "penalty_revenue": 0.0,
            "pending_penalties": 0.0,
            "completed_payments": 0,
        }
        for row in rows:
            total = float(row.total or 0)
            if row.payment_status == PaymentRecordStatus.COMPLETED:
                summary["completed_payments"] += row.count
                if row.payment_type == PaymentType.BOOKING:
                    summary["booking_revenue"] += total
                else:
                    summary["penalty_revenue"] += total
            elif row.payment_status == PaymentRecordStatus.PENDING and row.payment_type == PaymentType.PENALTY:
                summary["pending_penalties"] += total

        summary["total_revenue"] = round(summary["booking_revenue"] + summary["penalty_revenue"], 2)
        return summary
