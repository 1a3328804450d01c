from sqlalchemy import Column, Integer, String, Boolean, Float
from sqlalchemy.orm import relationship
from parkmitra.db.session import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String)
    admin_email = Column(String, nullable=False)

    # Visitor rate; the overstay penalty rate is derived from it
    hourly_rate = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, nullable=False, default=True)

    lots = relationship(
        "ParkingLot",
        back_populates="organization",
        cascade="all, delete",
    )
    members = relationship("User", back_populates="organization")
