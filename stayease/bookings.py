"""
Booking write path: validate the requested stay, then check and commit it
while holding the property's lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from stayease.db import BookingRecord, DbClient, ListingRecord
from stayease.intervals import Interval, is_bookable
from stayease.locks import PropertyLocks

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """The requested stay is malformed."""


class BookingUnavailable(Exception):
    """The requested stay overlaps an existing booking."""

    def __init__(self, listing_id: str, stay: Interval):
        self.listing_id = listing_id
        self.stay = stay
        super().__init__(f"Listing {listing_id} is already booked for these dates")


@dataclass(frozen=True)
class StayRequest:
    check_in: datetime
    check_out: datetime
    guests: int
    nights: int
    price: float


def validate_stay(stay: StayRequest, listing: ListingRecord) -> Interval:
    """Return the stay as a UTC interval or raise ValidationError."""
    if stay.check_in.tzinfo is None or stay.check_out.tzinfo is None:
        raise ValidationError("check_in and check_out must include a timezone")
    check_in = stay.check_in.astimezone(timezone.utc)
    check_out = stay.check_out.astimezone(timezone.utc)
    if check_in >= check_out:
        raise ValidationError("check_out must be after check_in")
    if stay.guests < 1:
        raise ValidationError("at least one guest is required")
    if stay.guests > listing.max_guests:
        raise ValidationError(
            f"listing accepts at most {listing.max_guests} guests"
        )
    return Interval(check_in, check_out)


def reserve(
    db: DbClient,
    locks: PropertyLocks,
    *,
    listing: ListingRecord,
    client_id: str,
    stay: StayRequest,
) -> BookingRecord:
    """
    Book ``listing`` for ``client_id``.

    Raises ValidationError for a malformed stay, BookingUnavailable when the
    dates clash and LockUnavailable when the property lock times out.
    """
    candidate = validate_stay(stay, listing)
    with locks.hold(listing.listing_id):
        existing = [
            Interval(booking.check_in, booking.check_out)
            for booking in db.fetch_bookings_for_property(listing.listing_id)
        ]
        if not is_bookable(existing, candidate):
            logger.info(
                "Rejected booking for %s: %s - %s overlaps %d existing stays",
                listing.listing_id,
                candidate.start.isoformat(),
                candidate.end.isoformat(),
                len(existing),
            )
            raise BookingUnavailable(listing.listing_id, candidate)
        booking = db.create_booking(
            listing_id=listing.listing_id,
            client_id=client_id,
            check_in=candidate.start,
            check_out=candidate.end,
            guests=stay.guests,
            nights=stay.nights,
            price=stay.price,
        )
    logger.info("Booked %s for %s (%s)", listing.listing_id, client_id, booking.booking_id)
    return booking


def split_past_upcoming(
    bookings: list[BookingRecord], now: datetime | None = None
) -> tuple[list[BookingRecord], list[BookingRecord]]:
    now = now or datetime.now(timezone.utc)
    past = [b for b in bookings if b.check_in < now]
    upcoming = [b for b in bookings if b.check_in >= now]
    return past, upcoming
