import pytest

from parkmitra.core.exceptions import InvalidTransition, NotFound, ValidationFailed
from parkmitra.models.enums import PaymentRecordStatus, PaymentStatus, PaymentType
from parkmitra.services.payments import normalize_method

from helpers import at, book, seed_organization, seed_user


def test_normalize_method():
    assert normalize_method("upi") == "UPI"
    assert normalize_method("credit card") == "Credit Card"
    assert normalize_method("Net_Banking") == "Net Banking"
    assert normalize_method(None) == "UPI"


def test_completed_booking_payment_marks_booking_paid(services, org_id, visitor_id, watchman_id, lot):
    booking = book(services, visitor_id, org_id, at(14), at(16))

    payment = services.payments.record_payment(booking.id, 40.0, "cash", watchman_id=watchman_id)

    assert payment.payment_status == PaymentRecordStatus.COMPLETED
    assert payment.watchman_id == watchman_id
    assert payment.transaction_id.startswith("TXN-")
    assert services.lifecycle.get_booking(booking.id).payment_status == PaymentStatus.COMPLETED


def test_pending_payment_completes_later(services, org_id, visitor_id, lot):
    booking = book(services, visitor_id, org_id, at(14), at(16))
    payment = services.payments.record_payment(
        booking.id, 40.0, "upi", status=PaymentRecordStatus.PENDING
    )
    assert services.lifecycle.get_booking(booking.id).payment_status == PaymentStatus.PENDING

    done = services.payments.complete_payment(payment.id)

    assert done.payment_status == PaymentRecordStatus.COMPLETED
    assert services.lifecycle.get_booking(booking.id).payment_status == PaymentStatus.COMPLETED


def test_failed_payment_is_final(services, org_id, visitor_id, lot):
    booking = book(services, visitor_id, org_id, at(14), at(16))
    payment = services.payments.record_payment(
        booking.id, 40.0, "card", status=PaymentRecordStatus.PENDING
    )

    assert services.payments.fail_payment(payment.id).payment_status == PaymentRecordStatus.FAILED
    with pytest.raises(InvalidTransition):
        services.payments.complete_payment(payment.id)


def test_payment_validation(services, org_id, visitor_id, lot):
    booking = book(services, visitor_id, org_id, at(14), at(16))

    with pytest.raises(ValidationFailed):
        services.payments.record_payment(booking.id, -5.0, "cash")
    with pytest.raises(NotFound):
        services.payments.record_payment(999, 10.0, "cash")
    with pytest.raises(NotFound):
        services.payments.complete_payment(999)


def test_penalty_payment_leaves_booking_payment_status(services, org_id, visitor_id, lot):
    booking = book(services, visitor_id, org_id, at(14), at(16))

    services.payments.record_payment(booking.id, 40.0, "cash", payment_type=PaymentType.PENALTY)

    assert services.lifecycle.get_booking(booking.id).payment_status == PaymentStatus.PENDING


def test_revenue_separates_bookings_and_penalties(services, database, org_id, visitor_id, lot):
    paid = book(services, visitor_id, org_id, at(14), at(16))
    services.payments.record_payment(paid.id, paid.amount, "upi")

    late = book(services, visitor_id, org_id, at(10), at(12), vehicle="DL1CAB5678")
    services.lifecycle.sweep_lifecycle(at(12, 5))
    services.lifecycle.mark_exit(late.id, at(12, 30))

    other_org = seed_organization(database, name="Elsewhere")
    other_user = seed_user(database, "other@mail.test")
    services.lots.create_lot(other_org, "Only", 1)
    stranger = book(services, other_user, other_org, at(14), at(16))
    services.payments.record_payment(stranger.id, 99.0, "cash")

    summary = services.payments.revenue_summary(org_id)

    assert summary["booking_revenue"] == 40.0
    assert summary["penalty_revenue"] == 0.0
    assert summary["pending_penalties"] == 40.0
    assert summary["completed_payments"] == 1
    assert summary["total_revenue"] == 40.0
