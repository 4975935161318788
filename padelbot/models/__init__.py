# padelbot/models/__init__.py
from .storage import ensure_db, iso_now
from .bookings import (
    create_location,
    ensure_user,
    create_booking,
    set_booking_cancelled,
    booking_exists,
    add_registration,
    remove_registration,
    get_booking_snapshot,
)
from .message_store import (
    MessageRecord,
    MessageStateStore,
    ABSENT,
    POSTED,
    STALE,
    DELETED,
)
from .types import Booking, BookingSnapshot, Location, Registration, User
