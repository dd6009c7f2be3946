"""Database-backed lease shared by every process that runs sync passes."""
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from lettersync.models.sync import SyncLease

LEASE_TTL_SECONDS = 600


def acquire_lease(engine, name: str, holder: str, ttl_seconds: int = LEASE_TTL_SECONDS) -> bool:
    """
    Take the lease if it is free or expired.

    The conditional UPDATE is the atomic step: of two processes racing for
    the same lease, only one sees a matched row.

    Returns:
        True if ``holder`` now owns the lease.
    """
    now = datetime.utcnow()
    with Session(engine) as s:
        if s.get(SyncLease, name) is None:
            s.add(SyncLease(name=name))
            try:
                s.commit()
            except IntegrityError:
                s.rollback()  # created concurrently by another process

        result = s.exec(
            update(SyncLease)
            .where(SyncLease.name == name)
            .where(or_(SyncLease.holder == None, SyncLease.expires_at < now))  # noqa: E711
            .values(
                holder=holder,
                acquired_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            .execution_options(synchronize_session=False)
        )
        s.commit()
        return result.rowcount == 1


def release_lease(engine, name: str, holder: str) -> None:
    """Free the lease if ``holder`` still owns it."""
    with Session(engine) as s:
        s.exec(
            update(SyncLease)
            .where(SyncLease.name == name)
            .where(SyncLease.holder == holder)
            .values(holder=None, acquired_at=None, expires_at=None)
            .execution_options(synchronize_session=False)
        )
        s.commit()
