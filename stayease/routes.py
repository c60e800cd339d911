"""
HTTP routes for the booking backend.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query

from stayease.bookings import (
    BookingUnavailable,
    StayRequest,
    ValidationError,
    reserve,
    split_past_upcoming,
)
from stayease.config import get_settings
from stayease.db import AlreadyRated, DbClient, ListingRecord
from stayease.dependencies import (
    get_booking_locks,
    get_current_user_id,
    get_db_client,
    get_listing_index,
    get_notifier,
    get_storage_client,
)
from stayease.index_sync import ListingIndexSynchronizer
from stayease.locks import LockUnavailable, PropertyLocks
from stayease.notifications import (
    Notifier,
    booking_messages,
    cancellation_messages,
    deliver,
)
from stayease.schemas import (
    BookingRequest,
    BookingResponse,
    CancelBookingResponse,
    CreateListingRequest,
    CreateListingResponse,
    CreateUserRequest,
    DeleteListingResponse,
    ListingResponse,
    MyBookingsResponse,
    RatingRequest,
    RatingResponse,
    SignUrlResponse,
    UpdateListingRequest,
    UserResponse,
)
from stayease.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_listing(db: DbClient, listing_id: str) -> ListingRecord:
    listing = db.get_listing(listing_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


def _require_owner(listing: ListingRecord, user_id: str) -> None:
    if listing.owner_id != user_id:
        raise HTTPException(
            status_code=403, detail="User not authorized to modify this listing"
        )


def _listing_response(listing: ListingRecord) -> ListingResponse:
    return ListingResponse(**listing.as_dict())


def _booking_response(booking) -> BookingResponse:
    return BookingResponse(**booking.as_dict())


# Users


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(payload: CreateUserRequest, db: DbClient = Depends(get_db_client)):
    if db.find_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="Email already taken")
    user = db.create_user(payload.name, payload.email, payload.languages)
    return UserResponse(**user.as_dict())


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: DbClient = Depends(get_db_client)):
    user = db.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(**user.as_dict())


# Listings


@router.get("/listings", response_model=list[ListingResponse])
def list_listings(db: DbClient = Depends(get_db_client)):
    return [_listing_response(listing) for listing in db.list_listings()]


@router.get("/listings/mine", response_model=list[ListingResponse])
def my_listings(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return [_listing_response(listing) for listing in db.list_listings_by_owner(user_id)]


@router.get("/listings/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str, db: DbClient = Depends(get_db_client)):
    return _listing_response(_require_listing(db, listing_id))


@router.post("/listings", response_model=CreateListingResponse, status_code=201)
def create_listing(
    payload: CreateListingRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    index: ListingIndexSynchronizer = Depends(get_listing_index),
):
    address = payload.address.model_dump()
    if db.find_listing_by_address(address):
        raise HTTPException(status_code=400, detail="Address already registered")
    listing = db.create_listing(user_id, payload.model_dump())
    index.on_listing_created(listing)
    return CreateListingResponse(
        listing_id=listing.listing_id, owner_id=listing.owner_id, status="ok"
    )


@router.patch("/listings/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: str,
    payload: UpdateListingRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    index: ListingIndexSynchronizer = Depends(get_listing_index),
):
    before = _require_listing(db, listing_id)
    _require_owner(before, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return _listing_response(before)
    after = db.update_listing(listing_id, changes)
    if not after:
        raise HTTPException(status_code=404, detail="Listing not found")
    index.on_listing_updated(before, after)
    return _listing_response(after)


@router.delete("/listings/{listing_id}", response_model=DeleteListingResponse)
def delete_listing(
    listing_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    index: ListingIndexSynchronizer = Depends(get_listing_index),
    storage: StorageClient = Depends(get_storage_client),
):
    listing = _require_listing(db, listing_id)
    _require_owner(listing, user_id)
    if not db.delete_listing(listing_id):
        raise HTTPException(status_code=500, detail="Failed to delete the listing")
    index.on_listing_deleted(listing)

    photo_prefix = f"{get_settings().photo_prefix}/"
    deleted_photos = []
    for url in listing.photos:
        path = storage.object_path(url)
        if not path or not path.startswith(photo_prefix):
            continue
        try:
            storage.delete_object(path)
            deleted_photos.append(path)
        except Exception as exc:
            logger.exception("Failed to delete photo %s: %s", path, exc)
    return DeleteListingResponse(listing_id=listing_id, deleted_photos=deleted_photos)


@router.post("/listings/{listing_id}/rating", response_model=RatingResponse)
def rate_listing(
    listing_id: str,
    payload: RatingRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    listing = _require_listing(db, listing_id)
    if listing.owner_id == user_id:
        raise HTTPException(status_code=400, detail="You cannot rate your own listing")
    try:
        updated = db.rate_listing(listing_id, user_id, payload.rating)
    except AlreadyRated:
        raise HTTPException(status_code=400, detail="You already rated this listing")
    if not updated:
        raise HTTPException(status_code=404, detail="Listing not found")
    return RatingResponse(
        listing_id=listing_id,
        rating=updated.rating,
        rating_count=updated.rating_count,
        rated_by=updated.rated_by,
    )


@router.get("/listings/{listing_id}/rating", response_model=RatingResponse)
def get_rating(listing_id: str, db: DbClient = Depends(get_db_client)):
    listing = _require_listing(db, listing_id)
    return RatingResponse(
        listing_id=listing_id,
        rating=listing.rating,
        rating_count=listing.rating_count,
        rated_by=listing.rated_by,
    )


@router.get("/search/{query}", response_model=list[ListingResponse])
def search_listings(
    query: str,
    db: DbClient = Depends(get_db_client),
    index: ListingIndexSynchronizer = Depends(get_listing_index),
):
    query = query.strip()
    if not query:
        return []
    listing_ids = index.search_by_prefix(query)
    return [_listing_response(listing) for listing in db.get_listings(listing_ids)]


# Bookings


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def book_listing(
    payload: BookingRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    locks: PropertyLocks = Depends(get_booking_locks),
    notifier: Notifier = Depends(get_notifier),
):
    listing = _require_listing(db, payload.listing_id)
    if listing.owner_id == user_id:
        raise HTTPException(status_code=400, detail="You cannot book your own listing")

    stay = StayRequest(
        check_in=payload.check_in,
        check_out=payload.check_out,
        guests=payload.guests,
        nights=payload.nights,
        price=payload.price,
    )
    try:
        booking = reserve(db, locks, listing=listing, client_id=user_id, stay=stay)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BookingUnavailable:
        raise HTTPException(
            status_code=409, detail="Listing already booked for these dates"
        )
    except LockUnavailable:
        raise HTTPException(
            status_code=503, detail="Listing is busy, please retry shortly"
        )

    deliver(
        notifier,
        booking_messages(
            listing, booking, db.get_user(user_id), db.get_user(listing.owner_id)
        ),
    )
    return _booking_response(booking)


@router.get("/bookings/mine", response_model=MyBookingsResponse)
def my_bookings(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    past, upcoming = split_past_upcoming(db.list_bookings_for_client(user_id))
    return MyBookingsResponse(
        past=[_booking_response(b) for b in past],
        upcoming=[_booking_response(b) for b in upcoming],
    )


@router.delete("/bookings/{booking_id}", response_model=CancelBookingResponse)
def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    notifier: Notifier = Depends(get_notifier),
):
    booking = db.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.client_id != user_id:
        raise HTTPException(
            status_code=403, detail="User not authorized to cancel this booking"
        )
    if not db.delete_booking(booking_id):
        raise HTTPException(status_code=500, detail="Failed to cancel the booking")

    listing = db.get_listing(booking.listing_id)
    if listing:
        deliver(
            notifier,
            cancellation_messages(
                listing, booking, db.get_user(user_id), db.get_user(listing.owner_id)
            ),
        )
    return CancelBookingResponse(status="cancelled", booking=_booking_response(booking))


# Photos


@router.get("/photos/sign-url", response_model=SignUrlResponse)
def sign_photo_url(
    filename: str = Query(..., min_length=1, max_length=200),
    op: str = Query("put", pattern="^(get|put)$"),
    expires_in: int = Query(3600, ge=60, le=86400),
    user_id: str = Depends(get_current_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    prefix = get_settings().photo_prefix
    if op == "put":
        safe_name = filename.rsplit("/", 1)[-1]
        path = f"{prefix}/{user_id}/{uuid4().hex}-{safe_name}"
        url = storage.presign_put(path, expires_in=expires_in)
    else:
        path = filename
        url = storage.presign_get(path, expires_in=expires_in)
    return SignUrlResponse(path=path, url=url)
