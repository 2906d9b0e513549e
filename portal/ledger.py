"""
Storage ledger: the per-account ``storage_used`` byte counter.

Every mutation is a single UPDATE evaluated by the database
(``storage_used = storage_used + :delta``) so concurrent uploads and deletes
for the same account cannot lose updates. ``reconcile`` is the repair path:
it recomputes the total from the live documents and writes it back.
"""

import logging

from sqlalchemy import case, func, update

from portal import db
from portal.models import Document, User

logger = logging.getLogger(__name__)


def credit(student_id: str, nbytes: int) -> None:
    """Add ``nbytes`` after a document record has been committed."""
    if nbytes <= 0:
        return
    db.session.execute(
        update(User)
        .where(User.student_id == student_id)
        .values(storage_used=User.storage_used + nbytes)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Ledger %s: +%d bytes", student_id, nbytes)


def debit(student_id: str, nbytes: int) -> None:
    """Subtract ``nbytes`` after a document's blob and record are gone.

    Floors at zero; a drifted counter never goes negative.
    """
    if nbytes <= 0:
        return
    db.session.execute(
        update(User)
        .where(User.student_id == student_id)
        .values(
            storage_used=case(
                (User.storage_used >= nbytes, User.storage_used - nbytes),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Ledger %s: -%d bytes", student_id, nbytes)


def live_total(student_id: str) -> int:
    return (
        db.session.query(func.coalesce(func.sum(Document.file_size), 0))
        .filter(Document.student_id == student_id)
        .scalar()
    )


def reconcile(student_id: str) -> int:
    """Overwrite the counter with the sum of live document sizes.

    Idempotent. Returns the authoritative total, which is 0 for an account
    with no documents or no longer existing.
    """
    total = int(live_total(student_id))
    res = db.session.execute(
        update(User)
        .where(User.student_id == student_id, User.storage_used != total)
        .values(storage_used=total)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    if res.rowcount:
        logger.warning("Ledger %s drifted; reset to %d bytes", student_id, total)
    return total


def reconcile_all() -> dict:
    """Reconcile every account. Returns ``{student_id: total}``."""
    student_ids = [sid for (sid,) in db.session.query(User.student_id).all()]
    return {sid: reconcile(sid) for sid in student_ids}
