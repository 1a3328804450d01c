from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from parkmitra.db.session import Base
from parkmitra.models.enums import BookingStatus, PaymentStatus, db_enum
from parkmitra.utils.clock import utcnow


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    # NULL = legacy booking made before lots existed
    parking_lot_id = Column(Integer, ForeignKey("parking_lots.lot_id"), nullable=True)

    vehicle_number = Column(String, nullable=False)
    # Virtual label "<lot-prefix>-<n>", unique only within its lot
    slot_number = Column(String, nullable=False)

    booking_start_time = Column(DateTime, nullable=False)
    booking_end_time = Column(DateTime, nullable=False)
    duration_hours = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False, default=0.0)

    payment_status = Column(
        db_enum(PaymentStatus, "bookingpaymentstatus"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    booking_status = Column(
        db_enum(BookingStatus, "bookingstatus"),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )

    entry_time = Column(DateTime, nullable=True)
    exit_time = Column(DateTime, nullable=True)
    overstay_minutes = Column(Integer, nullable=True)
    penalty_amount = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    user = relationship("User")
    organization = relationship("Organization")
    parking_lot = relationship("ParkingLot")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete")

    __table_args__ = (
        Index("ix_bookings_lot_slot_status", "parking_lot_id", "slot_number", "booking_status"),
        Index("ix_bookings_status_start", "booking_status", "booking_start_time"),
        Index("ix_bookings_status_end", "booking_status", "booking_end_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, slot={self.slot_number!r}, "
            f"status={self.booking_status.value if self.booking_status else None})>"
        )
