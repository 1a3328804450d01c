import pytest

from parkmitra.core.exceptions import InvariantViolation, NotFound
from parkmitra.db.base import Booking, ParkingLot
from parkmitra.models.enums import BookingStatus

from helpers import at, available, book


def test_update_available_slots_moves_counter(services, lot):
    assert services.ledger.update_available_slots(lot.lot_id, -1) == 1
    assert services.ledger.update_available_slots(lot.lot_id, -1) == 0
    assert services.ledger.update_available_slots(lot.lot_id, +1) == 1


def test_counter_never_goes_below_zero(services, lot):
    services.ledger.update_available_slots(lot.lot_id, -2)

    with pytest.raises(InvariantViolation):
        services.ledger.update_available_slots(lot.lot_id, -1)

    assert available(services, lot.lot_id) == 0


def test_counter_never_exceeds_total(services, lot):
    with pytest.raises(InvariantViolation):
        services.ledger.update_available_slots(lot.lot_id, +1)

    assert available(services, lot.lot_id) == 2


def test_counter_bounds_hold_for_any_sequence(services, lot):
    for delta in [-1, -1, -1, +1, +1, +1, -1, +1, +1]:
        try:
            services.ledger.update_available_slots(lot.lot_id, delta)
        except InvariantViolation:
            pass
        assert 0 <= available(services, lot.lot_id) <= 2


def test_unknown_lot(services):
    with pytest.raises(NotFound):
        services.ledger.update_available_slots(999, -1)


def test_recompute_heals_drift(services, database, org_id, visitor_id, lot):
    booking = book(services, visitor_id, org_id, at(10), at(12))
    assert booking.booking_status == BookingStatus.ACTIVE
    assert available(services, lot.lot_id) == 1

    with database.session() as db:
        db.query(ParkingLot).filter(ParkingLot.lot_id == lot.lot_id).update({"available_slots": 2})

    assert services.ledger.recompute_availability(lot.lot_id) == 1
    assert available(services, lot.lot_id) == 1


def test_recompute_ignores_confirmed_and_closed(services, database, org_id, visitor_id, lot):
    book(services, visitor_id, org_id, at(14), at(16))
    done = book(services, visitor_id, org_id, at(10), at(11), vehicle="DL1CAB5678")

    with database.session() as db:
        db.query(Booking).filter(Booking.id == done.id).update(
            {"booking_status": BookingStatus.COMPLETED}
        )

    assert services.ledger.recompute_availability(lot.lot_id) == 2


def test_reconcile_all_reports_every_lot(services, org_id, visitor_id, lot):
    second = services.lots.create_lot(org_id, "Back Yard", 5, priority_order=2)
    book(services, visitor_id, org_id, at(10), at(12))

    assert services.ledger.reconcile_all() == {lot.lot_id: 1, second.lot_id: 5}
    assert services.ledger.reconcile_all(organization_id=org_id + 100) == {}
