import re
from parkmitra.utils.clock import utcnow

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from parkmitra.db.session import Base


class ParkingLot(Base):
    __tablename__ = "parking_lots"

    lot_id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )

    lot_name = Column(String, nullable=False)
    lot_description = Column(String)

    total_slots = Column(Integer, nullable=False)
    # Cached counter; mutated only by the slot ledger
    available_slots = Column(Integer, nullable=False)

    # Lower number = tried first
    priority_order = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    # Bumped to take the lot's write lock before an allocation
    allocation_seq = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    organization = relationship("Organization", back_populates="lots")

    __table_args__ = (
        UniqueConstraint("organization_id", "lot_name", name="uq_lot_name_per_org"),
        CheckConstraint("total_slots >= 1", name="check_lot_total_slots_positive"),
        CheckConstraint(
            "available_slots >= 0 AND available_slots <= total_slots",
            name="check_lot_available_slots_bounds",
        ),
    )

    @property
    def slot_prefix(self) -> str:
        """Lot name with whitespace runs collapsed to hyphens, max 20 chars."""
        return re.sub(r"\s+", "-", self.lot_name)[:20]

    def slot_label(self, number: int) -> str:
        return f"{self.slot_prefix}-{number}"

    def __repr__(self) -> str:
        return f"<ParkingLot(id={self.lot_id}, name={self.lot_name!r}, {self.available_slots}/{self.total_slots})>"
