# Import every model so Base.metadata and relationship() targets are complete
from parkmitra.db.session import Base  # noqa: F401
from parkmitra.models.organization import Organization  # noqa: F401
from parkmitra.models.user import User  # noqa: F401
from parkmitra.models.parking_lot import ParkingLot  # noqa: F401
from parkmitra.models.booking import Booking  # noqa: F401
from parkmitra.models.payment import Payment  # noqa: F401
