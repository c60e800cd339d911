"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    delete,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

ADDRESS_FIELDS = ("street", "locality", "city", "pincode", "country")


class AlreadyRated(ValueError):
    """Raised when a user rates the same listing twice."""

    def __init__(self, listing_id: str, user_id: str):
        self.listing_id = listing_id
        self.user_id = user_id
        super().__init__(f"User {user_id} already rated listing {listing_id}")


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(self, name: str, email: str, languages: list[str]) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def find_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def create_listing(self, owner_id: str, fields: dict) -> "ListingRecord":
        ...

    def get_listing(self, listing_id: str) -> Optional["ListingRecord"]:
        ...

    def get_listings(self, listing_ids: Iterable[str]) -> list["ListingRecord"]:
        ...

    def find_listing_by_address(self, address: dict) -> Optional["ListingRecord"]:
        ...

    def list_listings(self) -> list["ListingRecord"]:
        ...

    def list_listings_by_owner(self, owner_id: str) -> list["ListingRecord"]:
        ...

    def fetch_all_listings(self) -> list["ListingRecord"]:
        ...

    def update_listing(
        self, listing_id: str, changes: dict
    ) -> Optional["ListingRecord"]:
        ...

    def delete_listing(self, listing_id: str) -> bool:
        ...

    def rate_listing(
        self, listing_id: str, user_id: str, rating: int
    ) -> Optional["ListingRecord"]:
        ...

    def create_booking(
        self,
        *,
        listing_id: str,
        client_id: str,
        check_in: datetime,
        check_out: datetime,
        guests: int,
        nights: int,
        price: float,
    ) -> "BookingRecord":
        ...

    def get_booking(self, booking_id: str) -> Optional["BookingRecord"]:
        ...

    def delete_booking(self, booking_id: str) -> bool:
        ...

    def list_bookings_for_client(self, client_id: str) -> list["BookingRecord"]:
        ...

    def fetch_bookings_for_property(self, listing_id: str) -> list["BookingRecord"]:
        ...


@dataclass
class UserRecord:
    user_id: str
    name: str
    email: str
    languages: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "languages": list(self.languages),
            "created_at": self.created_at,
        }


@dataclass
class ListingRecord:
    listing_id: str
    owner_id: str
    title: str
    address: dict
    photos: list[str] = field(default_factory=list)
    description: str = ""
    perks: list[str] = field(default_factory=list)
    extra_info: Optional[str] = None
    check_in_hour: int = 14
    check_out_hour: int = 11
    max_guests: int = 1
    price: float = 0.0
    rating: Optional[float] = None
    rating_count: int = 0
    rated_by: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    @property
    def city(self) -> str:
        return (self.address or {}).get("city", "")

    def as_dict(self) -> dict:
        return {
            "listing_id": self.listing_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "address": dict(self.address),
            "photos": list(self.photos),
            "description": self.description,
            "perks": list(self.perks),
            "extra_info": self.extra_info,
            "check_in_hour": self.check_in_hour,
            "check_out_hour": self.check_out_hour,
            "max_guests": self.max_guests,
            "price": self.price,
            "rating": self.rating,
            "rating_count": self.rating_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class BookingRecord:
    booking_id: str
    listing_id: str
    client_id: str
    check_in: datetime
    check_out: datetime
    guests: int
    nights: int
    price: float
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "listing_id": self.listing_id,
            "client_id": self.client_id,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "guests": self.guests,
            "nights": self.nights,
            "price": self.price,
            "created_at": self.created_at,
        }


def _running_average(current: Optional[float], count: int, rating: int) -> float:
    if not count or current is None:
        return float(rating)
    return round((current * count + rating) / (count + 1), 1)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.listings: Dict[str, ListingRecord] = {}
        self.bookings: Dict[str, BookingRecord] = {}
        self._write_lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.listings.clear()
        self.bookings.clear()

    def create_user(self, name: str, email: str, languages: list[str]) -> UserRecord:
        record = UserRecord(
            user_id=uuid.uuid4().hex, name=name, email=email, languages=list(languages)
        )
        self.users[record.user_id] = record
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        for record in self.users.values():
            if record.email == email:
                return record
        return None

    def create_listing(self, owner_id: str, fields: dict) -> ListingRecord:
        record = ListingRecord(listing_id=uuid.uuid4().hex, owner_id=owner_id, **fields)
        self.listings[record.listing_id] = record
        return replace(record)

    def get_listing(self, listing_id: str) -> Optional[ListingRecord]:
        record = self.listings.get(listing_id)
        return replace(record) if record else None

    def get_listings(self, listing_ids: Iterable[str]) -> list[ListingRecord]:
        return [
            replace(self.listings[listing_id])
            for listing_id in listing_ids
            if listing_id in self.listings
        ]

    def find_listing_by_address(self, address: dict) -> Optional[ListingRecord]:
        for record in self.listings.values():
            if record.address == address:
                return replace(record)
        return None

    def list_listings(self) -> list[ListingRecord]:
        return [replace(record) for record in self.listings.values()]

    def list_listings_by_owner(self, owner_id: str) -> list[ListingRecord]:
        return [
            replace(record)
            for record in self.listings.values()
            if record.owner_id == owner_id
        ]

    def fetch_all_listings(self) -> list[ListingRecord]:
        return self.list_listings()

    def update_listing(self, listing_id: str, changes: dict) -> Optional[ListingRecord]:
        with self._write_lock:
            record = self.listings.get(listing_id)
            if not record:
                return None
            updated = replace(record, **changes, updated_at=time.time())
            self.listings[listing_id] = updated
            return replace(updated)

    def delete_listing(self, listing_id: str) -> bool:
        if self.listings.pop(listing_id, None) is None:
            return False
        for booking_id in [
            b.booking_id for b in self.bookings.values() if b.listing_id == listing_id
        ]:
            del self.bookings[booking_id]
        return True

    def rate_listing(
        self, listing_id: str, user_id: str, rating: int
    ) -> Optional[ListingRecord]:
        with self._write_lock:
            record = self.listings.get(listing_id)
            if not record:
                return None
            if user_id in record.rated_by:
                raise AlreadyRated(listing_id, user_id)
            record.rating = _running_average(record.rating, record.rating_count, rating)
            record.rating_count += 1
            record.rated_by = [*record.rated_by, user_id]
            record.updated_at = time.time()
            return replace(record)

    def create_booking(
        self,
        *,
        listing_id: str,
        client_id: str,
        check_in: datetime,
        check_out: datetime,
        guests: int,
        nights: int,
        price: float,
    ) -> BookingRecord:
        record = BookingRecord(
            booking_id=uuid.uuid4().hex,
            listing_id=listing_id,
            client_id=client_id,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            nights=nights,
            price=price,
        )
        self.bookings[record.booking_id] = record
        return record

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        return self.bookings.get(booking_id)

    def delete_booking(self, booking_id: str) -> bool:
        return self.bookings.pop(booking_id, None) is not None

    def list_bookings_for_client(self, client_id: str) -> list[BookingRecord]:
        return sorted(
            (b for b in self.bookings.values() if b.client_id == client_id),
            key=lambda b: b.check_in,
        )

    def fetch_bookings_for_property(self, listing_id: str) -> list[BookingRecord]:
        return sorted(
            (b for b in self.bookings.values() if b.listing_id == listing_id),
            key=lambda b: b.check_in,
        )


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.user_id,
            name=row.name,
            email=row.email,
            languages=list(row.languages or []),
            created_at=row.created_at,
        )

    def _to_listing_record(self, row: "ListingRow") -> ListingRecord:
        return ListingRecord(
            listing_id=row.listing_id,
            owner_id=row.owner_id,
            title=row.title,
            address={name: getattr(row, name) for name in ADDRESS_FIELDS},
            photos=list(row.photos or []),
            description=row.description,
            perks=list(row.perks or []),
            extra_info=row.extra_info,
            check_in_hour=row.check_in_hour,
            check_out_hour=row.check_out_hour,
            max_guests=row.max_guests,
            price=row.price,
            rating=row.rating,
            rating_count=row.rating_count,
            rated_by=list(row.rated_by or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_booking_record(self, row: "BookingRow") -> BookingRecord:
        return BookingRecord(
            booking_id=row.booking_id,
            listing_id=row.listing_id,
            client_id=row.client_id,
            check_in=_as_utc(row.check_in),
            check_out=_as_utc(row.check_out),
            guests=row.guests,
            nights=row.nights,
            price=row.price,
            created_at=row.created_at,
        )

    def _apply_listing_fields(self, row: "ListingRow", fields: dict) -> None:
        for name, value in fields.items():
            if name == "address":
                for part in ADDRESS_FIELDS:
                    setattr(row, part, value.get(part, ""))
            else:
                setattr(row, name, value)

    def create_user(self, name: str, email: str, languages: list[str]) -> UserRecord:
        with self.Session() as session:
            row = UserRow(
                user_id=uuid.uuid4().hex,
                name=name,
                email=email,
                languages=list(languages),
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_user_record(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user_record(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.email == email).limit(1)
            ).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def create_listing(self, owner_id: str, fields: dict) -> ListingRecord:
        now = time.time()
        with self.Session() as session:
            row = ListingRow(
                listing_id=uuid.uuid4().hex,
                owner_id=owner_id,
                rating=None,
                rating_count=0,
                rated_by=[],
                created_at=now,
                updated_at=now,
            )
            self._apply_listing_fields(row, fields)
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_listing_record(row)

    def get_listing(self, listing_id: str) -> Optional[ListingRecord]:
        with self.Session() as session:
            row = session.get(ListingRow, listing_id)
            return self._to_listing_record(row) if row else None

    def get_listings(self, listing_ids: Iterable[str]) -> list[ListingRecord]:
        ids = list(listing_ids)
        if not ids:
            return []
        with self.Session() as session:
            rows = session.execute(
                select(ListingRow).where(ListingRow.listing_id.in_(ids))
            ).scalars()
            by_id = {row.listing_id: self._to_listing_record(row) for row in rows}
        return [by_id[listing_id] for listing_id in ids if listing_id in by_id]

    def find_listing_by_address(self, address: dict) -> Optional[ListingRecord]:
        with self.Session() as session:
            stmt = select(ListingRow).where(
                *[
                    getattr(ListingRow, part) == address.get(part, "")
                    for part in ADDRESS_FIELDS
                ]
            ).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_listing_record(row) if row else None

    def list_listings(self) -> list[ListingRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(ListingRow).order_by(ListingRow.created_at.asc())
            ).scalars()
            return [self._to_listing_record(row) for row in rows]

    def list_listings_by_owner(self, owner_id: str) -> list[ListingRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(ListingRow)
                .where(ListingRow.owner_id == owner_id)
                .order_by(ListingRow.created_at.asc())
            ).scalars()
            return [self._to_listing_record(row) for row in rows]

    def fetch_all_listings(self) -> list[ListingRecord]:
        return self.list_listings()

    def update_listing(self, listing_id: str, changes: dict) -> Optional[ListingRecord]:
        with self.Session() as session:
            row = session.get(ListingRow, listing_id)
            if not row:
                return None
            self._apply_listing_fields(row, changes)
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_listing_record(row)

    def delete_listing(self, listing_id: str) -> bool:
        with self.Session() as session:
            row = session.get(ListingRow, listing_id)
            if not row:
                return False
            session.execute(delete(BookingRow).where(BookingRow.listing_id == listing_id))
            session.delete(row)
            session.commit()
            return True

    def rate_listing(
        self, listing_id: str, user_id: str, rating: int
    ) -> Optional[ListingRecord]:
        with self.Session() as session:
            row = session.get(ListingRow, listing_id, with_for_update=True)
            if not row:
                return None
            if user_id in (row.rated_by or []):
                raise AlreadyRated(listing_id, user_id)
            row.rating = _running_average(row.rating, row.rating_count, rating)
            row.rating_count = row.rating_count + 1
            row.rated_by = [*(row.rated_by or []), user_id]
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_listing_record(row)

    def create_booking(
        self,
        *,
        listing_id: str,
        client_id: str,
        check_in: datetime,
        check_out: datetime,
        guests: int,
        nights: int,
        price: float,
    ) -> BookingRecord:
        with self.Session() as session:
            row = BookingRow(
                booking_id=uuid.uuid4().hex,
                listing_id=listing_id,
                client_id=client_id,
                check_in=check_in.astimezone(timezone.utc),
                check_out=check_out.astimezone(timezone.utc),
                guests=guests,
                nights=nights,
                price=price,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_booking_record(row)

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        with self.Session() as session:
            row = session.get(BookingRow, booking_id)
            return self._to_booking_record(row) if row else None

    def delete_booking(self, booking_id: str) -> bool:
        with self.Session() as session:
            row = session.get(BookingRow, booking_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_bookings_for_client(self, client_id: str) -> list[BookingRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(BookingRow)
                .where(BookingRow.client_id == client_id)
                .order_by(BookingRow.check_in.asc())
            ).scalars()
            return [self._to_booking_record(row) for row in rows]

    def fetch_bookings_for_property(self, listing_id: str) -> list[BookingRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(BookingRow)
                .where(BookingRow.listing_id == listing_id)
                .order_by(BookingRow.check_in.asc())
            ).scalars()
            return [self._to_booking_record(row) for row in rows]


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    languages = Column(JSON, nullable=False, default=list)
    created_at = Column(Float, nullable=False)


class ListingRow(Base):
    __tablename__ = "listings"

    listing_id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    street = Column(String, nullable=False)
    locality = Column(String, nullable=False)
    city = Column(String, nullable=False, index=True)
    pincode = Column(String, nullable=False)
    country = Column(String, nullable=False)
    photos = Column(JSON, nullable=False, default=list)
    description = Column(String, nullable=False, default="")
    perks = Column(JSON, nullable=False, default=list)
    extra_info = Column(String, nullable=True)
    check_in_hour = Column(Integer, nullable=False)
    check_out_hour = Column(Integer, nullable=False)
    max_guests = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    rating = Column(Float, nullable=True)
    rating_count = Column(Integer, nullable=False, default=0)
    rated_by = Column(JSON, nullable=False, default=list)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class BookingRow(Base):
    __tablename__ = "bookings"

    booking_id = Column(String, primary_key=True)
    listing_id = Column(
        String, ForeignKey("listings.listing_id"), nullable=False, index=True
    )
    client_id = Column(String, nullable=False, index=True)
    check_in = Column(DateTime(timezone=True), nullable=False, index=True)
    check_out = Column(DateTime(timezone=True), nullable=False)
    guests = Column(Integer, nullable=False)
    nights = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)
