"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from stayease.config import get_settings
from stayease.db import DbClient, InMemoryDbClient, PostgresDbClient
from stayease.index_sync import ListingIndexSynchronizer
from stayease.locks import InMemoryPropertyLocks, PropertyLocks, RedisPropertyLocks
from stayease.notifications import LoggingNotifier, Notifier, SmtpNotifier
from stayease.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_booking_locks: PropertyLocks | None = None
_notifier: Notifier | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_booking_locks() -> PropertyLocks:
    """
    Return the per-property lock manager. Redis-backed locks are required as
    soon as more than one worker process serves bookings.
    """
    global _booking_locks
    if _booking_locks:
        return _booking_locks

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _booking_locks = RedisPropertyLocks(
            url=settings.redis_url,
            prefix=settings.redis_lock_prefix,
            timeout_seconds=settings.booking_lock_timeout_seconds,
            wait_seconds=settings.booking_lock_wait_seconds,
        )
    else:
        _booking_locks = InMemoryPropertyLocks(
            wait_seconds=settings.booking_lock_wait_seconds
        )
    return _booking_locks


def get_notifier() -> Notifier:
    global _notifier
    if _notifier:
        return _notifier

    settings = get_settings()
    if settings.smtp_host and not settings.use_in_memory_backends:
        _notifier = SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
        )
    else:
        _notifier = LoggingNotifier()
    return _notifier


def get_listing_index(request: Request) -> ListingIndexSynchronizer:
    """The search index belongs to the running app, not to this module."""
    return request.app.state.listing_index


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Identity forwarded by the authenticating gateway in front of the API.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id
