import math
from dataclasses import dataclass
from datetime import datetime

from parkmitra.core.config import PENALTY_MULTIPLIER
from parkmitra.core.exceptions import NotOverstay


@dataclass(frozen=True)
class PenaltyQuote:
    overstay_minutes: int
    overstay_hours: int
    penalty_rate: float
    penalty_amount: float


class PenaltyCalculator:
    """Overstay is billed per started hour at a multiple of the visitor rate.

    The multiple applies to members too; overstay is never free.
    """

    def __init__(self, multiplier: float = PENALTY_MULTIPLIER):
        self.multiplier = multiplier

    def quote(self, end_time: datetime, now: datetime, hourly_rate: float) -> PenaltyQuote:
        overstay_minutes = math.ceil((now - end_time).total_seconds() / 60)
        if overstay_minutes <= 0:
            raise NotOverstay("Booking has not overstayed yet")

        overstay_hours = math.ceil(overstay_minutes / 60)
        penalty_rate = hourly_rate * self.multiplier

        return PenaltyQuote(
            overstay_minutes=overstay_minutes,
            overstay_hours=overstay_hours,
            penalty_rate=penalty_rate,
            penalty_amount=round(overstay_hours * penalty_rate, 2),
        )
