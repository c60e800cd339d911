import unittest
from datetime import datetime, timedelta, timezone

from stayease.db import AlreadyRated, PostgresDbClient


def _fields(city: str, street: str) -> dict:
    return {
        "title": f"Cottage in {city}",
        "address": {
            "street": street,
            "locality": "Old Town",
            "city": city,
            "pincode": "560001",
            "country": "India",
        },
        "photos": ["https://example.test/storage/listings/x.jpg"],
        "description": "Quiet cottage",
        "perks": ["garden"],
        "extra_info": None,
        "check_in_hour": 13,
        "check_out_hour": 10,
        "max_guests": 2,
        "price": 80.0,
    }


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_user_roundtrip(self):
        user = self.db.create_user("Asha", "asha@example.com", ["en", "hi"])
        fetched = self.db.get_user(user.user_id)
        self.assertEqual(fetched.email, "asha@example.com")
        self.assertEqual(fetched.languages, ["en", "hi"])
        self.assertEqual(self.db.find_user_by_email("asha@example.com").user_id, user.user_id)
        self.assertIsNone(self.db.get_user("missing"))

    def test_create_and_get_listing(self):
        listing = self.db.create_listing("owner", _fields("Bengaluru", "1 MG Rd"))
        fetched = self.db.get_listing(listing.listing_id)
        self.assertEqual(fetched.city, "Bengaluru")
        self.assertEqual(fetched.address["street"], "1 MG Rd")
        self.assertEqual(fetched.perks, ["garden"])
        self.assertIsNone(fetched.rating)

    def test_find_by_address(self):
        listing = self.db.create_listing("owner", _fields("Mysuru", "2 Palace Rd"))
        found = self.db.find_listing_by_address(_fields("Mysuru", "2 Palace Rd")["address"])
        self.assertEqual(found.listing_id, listing.listing_id)
        self.assertIsNone(
            self.db.find_listing_by_address(_fields("Mysuru", "3 Palace Rd")["address"])
        )

    def test_fetch_all_and_hydrate_in_order(self):
        a = self.db.create_listing("o1", _fields("Kochi", "1 Fort Rd"))
        b = self.db.create_listing("o2", _fields("Kollam", "2 Beach Rd"))
        ids = {listing.listing_id for listing in self.db.fetch_all_listings()}
        self.assertEqual(ids, {a.listing_id, b.listing_id})
        hydrated = self.db.get_listings([b.listing_id, "missing", a.listing_id])
        self.assertEqual(
            [listing.listing_id for listing in hydrated], [b.listing_id, a.listing_id]
        )
        self.assertEqual(
            [listing.listing_id for listing in self.db.list_listings_by_owner("o2")],
            [b.listing_id],
        )

    def test_update_listing_city(self):
        listing = self.db.create_listing("owner", _fields("Surat", "4 Ring Rd"))
        updated = self.db.update_listing(
            listing.listing_id,
            {"address": {**listing.address, "city": "Vadodara"}, "price": 95.0},
        )
        self.assertEqual(updated.city, "Vadodara")
        self.assertEqual(updated.price, 95.0)
        self.assertIsNone(self.db.update_listing("missing", {"price": 1.0}))

    def test_rate_listing_running_average(self):
        listing = self.db.create_listing("owner", _fields("Agra", "5 Taj Rd"))
        self.db.rate_listing(listing.listing_id, "u1", 4)
        rated = self.db.rate_listing(listing.listing_id, "u2", 5)
        self.assertEqual(rated.rating, 4.5)
        self.assertEqual(rated.rating_count, 2)
        self.assertEqual(rated.rated_by, ["u1", "u2"])

        with self.assertRaises(AlreadyRated):
            self.db.rate_listing(listing.listing_id, "u1", 1)
        self.assertEqual(self.db.get_listing(listing.listing_id).rating_count, 2)

    def test_bookings_fetched_sorted_by_check_in(self):
        listing = self.db.create_listing("owner", _fields("Ooty", "6 Lake Rd"))
        base = datetime(2030, 5, 1, 12, tzinfo=timezone.utc)
        for offset in (10, 0, 5):
            self.db.create_booking(
                listing_id=listing.listing_id,
                client_id="guest",
                check_in=base + timedelta(days=offset),
                check_out=base + timedelta(days=offset + 2),
                guests=1,
                nights=2,
                price=160.0,
            )
        bookings = self.db.fetch_bookings_for_property(listing.listing_id)
        self.assertEqual(
            [b.check_in for b in bookings],
            [base, base + timedelta(days=5), base + timedelta(days=10)],
        )
        self.assertEqual(bookings[0].check_in.tzinfo, timezone.utc)
        self.assertEqual(len(self.db.list_bookings_for_client("guest")), 3)

    def test_offset_datetimes_stored_as_utc(self):
        listing = self.db.create_listing("owner", _fields("Leh", "7 Hill Rd"))
        ist = timezone(timedelta(hours=5, minutes=30))
        check_in = datetime(2030, 6, 1, 14, tzinfo=ist)
        booking = self.db.create_booking(
            listing_id=listing.listing_id,
            client_id="guest",
            check_in=check_in,
            check_out=check_in + timedelta(days=1),
            guests=1,
            nights=1,
            price=50.0,
        )
        fetched = self.db.get_booking(booking.booking_id)
        self.assertEqual(fetched.check_in, check_in)

    def test_delete_listing_and_booking(self):
        listing = self.db.create_listing("owner", _fields("Shimla", "8 Mall Rd"))
        booking = self.db.create_booking(
            listing_id=listing.listing_id,
            client_id="guest",
            check_in=datetime(2030, 1, 1, tzinfo=timezone.utc),
            check_out=datetime(2030, 1, 2, tzinfo=timezone.utc),
            guests=1,
            nights=1,
            price=50.0,
        )
        self.assertTrue(self.db.delete_booking(booking.booking_id))
        self.assertFalse(self.db.delete_booking(booking.booking_id))
        self.assertTrue(self.db.delete_listing(listing.listing_id))
        self.assertIsNone(self.db.get_listing(listing.listing_id))
        self.assertFalse(self.db.delete_listing(listing.listing_id))


if __name__ == "__main__":
    unittest.main()
