from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from parkmitra.db.session import Base
from parkmitra.models.enums import PaymentRecordStatus, PaymentType, db_enum
from parkmitra.utils.clock import utcnow


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    transaction_id = Column(String, unique=True, nullable=False)

    payment_status = Column(
        db_enum(PaymentRecordStatus, "paymentrecordstatus"),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
    )
    payment_type = Column(
        db_enum(PaymentType, "paymenttype"),
        nullable=False,
        default=PaymentType.BOOKING,
    )

    # Cash collector, if any
    watchman_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    payment_timestamp = Column(DateTime, default=utcnow)

    booking = relationship("Booking", back_populates="payments")
