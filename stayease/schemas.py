"""
Pydantic schemas for the booking backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=254)
    languages: list[str] = Field(default_factory=list)


class UserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    languages: list[str]


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    locality: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class CreateListingRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    address: Address
    photos: list[str] = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    perks: list[str] = Field(default_factory=list)
    extra_info: Optional[str] = None
    check_in_hour: int = Field(..., ge=0, le=23)
    check_out_hour: int = Field(..., ge=0, le=23)
    max_guests: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class UpdateListingRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[Address] = None
    photos: Optional[list[str]] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    perks: Optional[list[str]] = None
    extra_info: Optional[str] = None
    check_in_hour: Optional[int] = Field(default=None, ge=0, le=23)
    check_out_hour: Optional[int] = Field(default=None, ge=0, le=23)
    max_guests: Optional[int] = Field(default=None, ge=1)
    price: Optional[float] = Field(default=None, ge=0)

    @field_validator(
        "title",
        "address",
        "photos",
        "description",
        "perks",
        "check_in_hour",
        "check_out_hour",
        "max_guests",
        "price",
    )
    @classmethod
    def reject_null(cls, value):
        # Only extra_info may be cleared; other fields can be omitted, not nulled.
        if value is None:
            raise ValueError("must not be null")
        return value


class ListingResponse(BaseModel):
    listing_id: str
    owner_id: str
    title: str
    address: Address
    photos: list[str]
    description: str
    perks: list[str]
    extra_info: Optional[str] = None
    check_in_hour: int
    check_out_hour: int
    max_guests: int
    price: float
    rating: Optional[float] = None
    rating_count: int = 0


class CreateListingResponse(BaseModel):
    listing_id: str
    owner_id: str
    status: Literal["ok"]


class DeleteListingResponse(BaseModel):
    listing_id: str
    deleted_photos: list[str]


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class RatingResponse(BaseModel):
    listing_id: str
    rating: Optional[float] = None
    rating_count: int
    rated_by: list[str] = Field(default_factory=list)


class BookingRequest(BaseModel):
    listing_id: str
    check_in: datetime
    check_out: datetime
    guests: int = Field(..., ge=1)
    nights: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class BookingResponse(BaseModel):
    booking_id: str
    listing_id: str
    client_id: str
    check_in: datetime
    check_out: datetime
    guests: int
    nights: int
    price: float


class MyBookingsResponse(BaseModel):
    past: list[BookingResponse]
    upcoming: list[BookingResponse]


class CancelBookingResponse(BaseModel):
    status: Literal["cancelled"]
    booking: BookingResponse


class SignUrlResponse(BaseModel):
    path: str
    url: str
