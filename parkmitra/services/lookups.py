from sqlalchemy.orm import Session

from parkmitra.core.exceptions import NotFound
from parkmitra.db.base import Booking, Organization, ParkingLot, User


def get_organization(db: Session, organization_id: int, require_active: bool = False) -> Organization:
    org = db.query(Organization).filter(Organization.id == organization_id).first()
    if not org:
        raise NotFound("Organization not found", organization_id=organization_id)
    if require_active and not org.is_active:
        raise NotFound("Organization is not accepting bookings", organization_id=organization_id)
    return org


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found", user_id=user_id)
    return user


def get_lot(db: Session, lot_id: int) -> ParkingLot:
    lot = db.query(ParkingLot).filter(ParkingLot.lot_id == lot_id).populate_existing().first()
    if not lot:
        raise NotFound("Parking lot not found", lot_id=lot_id)
    return lot


def get_booking(db: Session, booking_id: int) -> Booking:
    # populate_existing: re-read after compare-and-swap updates in the same session
    booking = db.query(Booking).filter(Booking.id == booking_id).populate_existing().first()
    if not booking:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking
