"""
Backend package for the StayEase booking platform.

Provides a FastAPI application over a listings/bookings database, an
in-memory city prefix index kept in sync with listing writes, and the
interval check that guards every reservation against double booking.
"""
