from dataclasses import dataclass

from parkmitra.core.redis import AvailabilityCache
from parkmitra.db.session import Database
from parkmitra.services.allocator import LotAllocator
from parkmitra.services.ledger import SlotLedger
from parkmitra.services.lifecycle import BookingLifecycle
from parkmitra.services.lots import LotRegistry
from parkmitra.services.overlap import OverlapChecker
from parkmitra.services.payments import PaymentService
from parkmitra.services.penalty import PenaltyCalculator


@dataclass
class ParkingServices:
    db: Database
    cache: AvailabilityCache
    ledger: SlotLedger
    overlap: OverlapChecker
    allocator: LotAllocator
    penalties: PenaltyCalculator
    payments: PaymentService
    lifecycle: BookingLifecycle
    lots: LotRegistry


def build_services(db: Database, cache: AvailabilityCache | None = None) -> ParkingServices:
    """Wire every engine component around one opened database."""
    cache = cache or AvailabilityCache()
    ledger = SlotLedger(db, cache)
    overlap = OverlapChecker(db)
    allocator = LotAllocator(db, overlap)
    penalties = PenaltyCalculator()
    payments = PaymentService(db)
    lifecycle = BookingLifecycle(db, ledger, allocator, overlap, penalties, payments)
    lots = LotRegistry(db, ledger, cache)

    return ParkingServices(
        db=db,
        cache=cache,
        ledger=ledger,
        overlap=overlap,
        allocator=allocator,
        penalties=penalties,
        payments=payments,
        lifecycle=lifecycle,
        lots=lots,
    )
