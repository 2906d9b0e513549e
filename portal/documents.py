"""
Document lifecycle: create, delete, favourite, download, cascade.

Ordering keeps the worst case at "orphaned blob":

    upload:  write blob  -> commit record -> credit ledger
    delete:  remove blob -> delete record -> debit ledger

An orphaned blob is swept later (``flask sweep-orphans``); a record without
its blob is what ``resolve_download`` reports as NotFound.
"""

import logging

from flask import current_app

from portal import db, ledger, storage
from portal.errors import (
    NotFound,
    NotFoundOrForbidden,
    PolicyError,
    StorageIOError,
    UnsupportedFormat,
    ValidationError,
)
from portal.filetypes import detect_file_type
from portal.models import Document, User

logger = logging.getLogger(__name__)

_NOT_YOURS = "Document not found or not authorized"


def _owned_document(owner, doc_id) -> Document:
    doc = db.session.get(Document, doc_id)
    if doc is None or doc.student_id != owner.student_id:
        raise NotFoundOrForbidden(_NOT_YOURS)
    return doc


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  CREATE                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

def create_document(owner, blob, file_type, category=None) -> Document:
    """Record an already-written blob and credit the owner's ledger."""
    doc = Document(
        student_id=owner.student_id,
        file_name=blob.file_name,
        file_path=blob.path,
        file_size=blob.size,
        file_type=file_type,
        category=category,
    )
    try:
        db.session.add(doc)
        db.session.commit()
    except Exception:
        db.session.rollback()
        # Not retried; sweep-orphans removes the blob later
        logger.error("Record write failed; blob %s is orphaned", blob.path)
        raise

    ledger.credit(owner.student_id, blob.size)
    return doc


def ingest_upload(owner, file_storage, category=None) -> Document:
    """Store an uploaded file, check size/type policy, then create the record."""
    if file_storage is None or not file_storage.filename:
        raise ValidationError("No file uploaded")

    blob = storage.write_blob(owner.student_id, file_storage)

    max_size = current_app.config["MAX_FILE_SIZE"]
    if blob.size > max_size:
        storage.delete_blob(blob.path)
        raise ValidationError(f"File size exceeds {max_size // (1024 * 1024)}MB limit")

    file_type = detect_file_type(
        path=blob.path,
        mimetype=file_storage.mimetype,
        filename=file_storage.filename,
    )
    if file_type not in current_app.config["ALLOWED_FILE_TYPES"]:
        storage.delete_blob(blob.path)
        raise UnsupportedFormat(
            "Only PDF, image, Word, Excel and text files are allowed"
        )

    return create_document(owner, blob, file_type, category)


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  READ                                                              ║
# ╚══════════════════════════════════════════════════════════════════════╝

def list_documents(owner):
    if current_app.config.get("RECONCILE_ON_LIST", True):
        ledger.reconcile(owner.student_id)
    return (
        Document.query.filter_by(student_id=owner.student_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def search_documents(owner, query):
    query = (query or "").strip()
    q = Document.query.filter_by(student_id=owner.student_id)
    if query:
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        q = q.filter(Document.file_name.ilike(f"%{escaped}%", escape="\\"))
    return q.order_by(Document.created_at.desc()).all()


def resolve_download(owner, doc_id) -> Document:
    doc = _owned_document(owner, doc_id)
    if not storage.blob_exists(doc.file_path):
        # Record without blob: the drift reconciliation is meant to catch
        raise NotFound("File not found on server")
    return doc


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  UPDATE                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

def toggle_favorite(owner, doc_id) -> Document:
    doc = _owned_document(owner, doc_id)
    doc.is_favorite = not doc.is_favorite
    db.session.commit()
    return doc


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  DELETE                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

def delete_document(owner, doc_id) -> None:
    doc = _owned_document(owner, doc_id)
    doc_pk, path, size, student_id = doc.id, doc.file_path, doc.file_size, doc.student_id

    if not storage.delete_blob(path):
        logger.warning("Blob %s already absent; removing record anyway", path)

    removed = Document.query.filter_by(id=doc_pk).delete(synchronize_session=False)
    db.session.commit()
    if removed != 1:
        # A concurrent or retried delete got here first and already debited
        raise NotFoundOrForbidden(_NOT_YOURS)

    ledger.debit(student_id, size)


def delete_account(admin, user_id) -> dict:
    """Admin cascade: blobs, account directory, document rows, account."""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundOrForbidden("User not found")
    if user.id == admin.id:
        raise PolicyError("Cannot delete your own account")

    student_id = user.student_id
    docs = Document.query.filter_by(student_id=student_id).all()

    failures = []
    for doc in docs:
        try:
            storage.delete_blob(doc.file_path)
        except StorageIOError as e:
            logger.warning("Cascade delete of %s: %s", student_id, e.message)
            failures.append(doc.file_name)

    try:
        storage.remove_account_dir(student_id)
    except OSError as e:
        logger.warning("Could not remove upload directory for %s: %s", student_id, e)

    removed = Document.query.filter_by(student_id=student_id).delete(synchronize_session=False)
    db.session.delete(user)
    db.session.commit()

    logger.info(
        "Deleted account %s with %d documents (%d blob failures)",
        student_id,
        removed,
        len(failures),
    )
    return {
        "studentId": student_id,
        "documentsDeleted": removed,
        "blobFailures": failures,
    }
