from datetime import datetime

from parkmitra.db.base import Organization, User
from parkmitra.models.enums import UserType

NOW = datetime(2030, 1, 15, 10, 0)


def at(hour: int, minute: int = 0) -> datetime:
    return NOW.replace(hour=hour, minute=minute)


def seed_organization(database, name="VIIT Campus", hourly_rate=20.0, is_active=True) -> int:
    with database.session() as db:
        org = Organization(
            name=name,
            address="Visakhapatnam",
            admin_email="admin@viit.test",
            hourly_rate=hourly_rate,
            is_active=is_active,
        )
        db.add(org)
        db.flush()
        return org.id


def seed_user(database, email, user_type=UserType.VISITOR, organization_id=None) -> int:
    with database.session() as db:
        user = User(
            name=email.split("@")[0],
            email=email,
            mobile="9000000000",
            user_type=user_type,
            organization_id=organization_id,
        )
        db.add(user)
        db.flush()
        return user.id


def book(services, user_id, org_id, start, end, vehicle="KA01AB1234", now=NOW):
    return services.lifecycle.allocate_and_create_booking(
        user_id=user_id,
        organization_id=org_id,
        vehicle_number=vehicle,
        start=start,
        end=end,
        now=now,
    )


def available(services, lot_id) -> int:
    return services.lots.get_lot(lot_id).available_slots
