import io
import os
import zipfile

import pytest

from conftest import PDF_BYTES, PNG_BYTES, upload_file
from portal import db, documents, ledger, storage
from portal.errors import (
    NotFound,
    NotFoundOrForbidden,
    PolicyError,
    UnsupportedFormat,
    ValidationError,
)
from portal.models import Document, User
from portal.storage import StoredBlob


def _used(user):
    db.session.expire_all()
    return db.session.get(User, user.id).storage_used


def test_upload_records_document_and_credits_ledger(student):
    doc = documents.ingest_upload(student, upload_file(), category="Assignments")

    assert doc.file_type == "pdf"
    assert doc.category == "Assignments"
    assert doc.file_size == len(PDF_BYTES)
    assert doc.file_name.endswith("_notes.pdf")
    assert os.path.dirname(doc.file_path) == storage.account_dir(student.student_id)
    assert storage.blob_exists(doc.file_path)
    assert _used(student) == len(PDF_BYTES)


def test_upload_then_delete_restores_ledger(student):
    ledger.credit(student.student_id, 77)
    before = _used(student)

    doc = documents.ingest_upload(student, upload_file())
    doc_id, path = doc.id, doc.file_path
    documents.delete_document(student, doc_id)

    assert _used(student) == before
    assert not storage.blob_exists(path)
    assert db.session.get(Document, doc_id) is None


def test_two_uploads_never_share_a_path(student):
    first = documents.ingest_upload(student, upload_file())
    second = documents.ingest_upload(student, upload_file(PNG_BYTES, "notes.pdf", "image/png"))

    assert first.file_path != second.file_path
    assert _used(student) == len(PDF_BYTES) + len(PNG_BYTES)


def test_missing_file_is_a_validation_error(student):
    with pytest.raises(ValidationError):
        documents.ingest_upload(student, None)


def test_oversized_upload_is_rejected_without_side_effects(app, student):
    app.config["MAX_FILE_SIZE"] = 10

    with pytest.raises(ValidationError):
        documents.ingest_upload(student, upload_file())

    assert Document.query.count() == 0
    assert list(storage.iter_blobs()) == []
    assert _used(student) == 0


def test_disallowed_type_is_rejected_and_blob_removed(student):
    with pytest.raises(UnsupportedFormat):
        documents.ingest_upload(
            student, upload_file(b"\x00\x01binary", "blob.bin", "application/octet-stream")
        )

    assert Document.query.count() == 0
    assert list(storage.iter_blobs()) == []


def test_presentation_upload_is_rejected_despite_declared_type(student):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("[Content_Types].xml", "<Types/>")
        zf.writestr("ppt/presentation.xml", "<p/>")
    upload = upload_file(
        buffer.getvalue(),
        "deck.pptx",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    )

    with pytest.raises(UnsupportedFormat):
        documents.ingest_upload(student, upload)

    assert Document.query.count() == 0
    assert list(storage.iter_blobs()) == []
    assert _used(student) == 0


def test_record_failure_does_not_credit(student):
    doc = documents.ingest_upload(student, upload_file())
    clash = StoredBlob(path=doc.file_path, file_name="clash.pdf", size=999)

    with pytest.raises(Exception):
        documents.create_document(student, clash, "pdf")

    assert _used(student) == doc.file_size
    assert storage.blob_exists(doc.file_path)


def test_delete_by_other_account_is_not_found(student, other_student):
    doc = documents.ingest_upload(student, upload_file())

    with pytest.raises(NotFoundOrForbidden):
        documents.delete_document(other_student, doc.id)

    assert storage.blob_exists(doc.file_path)
    assert _used(student) == doc.file_size


def test_delete_of_absent_document_is_indistinguishable(student):
    with pytest.raises(NotFoundOrForbidden) as exc:
        documents.delete_document(student, 12345)

    assert exc.value.message == "Document not found or not authorized"


def test_retried_delete_debits_once(student):
    keep = documents.ingest_upload(student, upload_file(PNG_BYTES, "photo.png", "image/png"))
    doc_id = documents.ingest_upload(student, upload_file()).id
    documents.delete_document(student, doc_id)

    with pytest.raises(NotFoundOrForbidden):
        documents.delete_document(student, doc_id)

    assert _used(student) == keep.file_size


def test_delete_with_blob_already_gone_still_removes_record(student):
    doc = documents.ingest_upload(student, upload_file())
    os.remove(doc.file_path)

    documents.delete_document(student, doc.id)

    assert Document.query.count() == 0
    assert _used(student) == 0


def test_toggle_favorite_leaves_ledger_alone(student):
    doc = documents.ingest_upload(student, upload_file())

    assert documents.toggle_favorite(student, doc.id).is_favorite is True
    assert documents.toggle_favorite(student, doc.id).is_favorite is False
    assert _used(student) == doc.file_size


def test_toggle_favorite_requires_ownership(student, other_student):
    doc = documents.ingest_upload(student, upload_file())

    with pytest.raises(NotFoundOrForbidden):
        documents.toggle_favorite(other_student, doc.id)


def test_download_of_missing_blob_is_not_found(student):
    doc = documents.ingest_upload(student, upload_file())
    assert documents.resolve_download(student, doc.id).id == doc.id

    os.remove(doc.file_path)

    with pytest.raises(NotFound):
        documents.resolve_download(student, doc.id)
    with pytest.raises(NotFoundOrForbidden):
        documents.resolve_download(student, doc.id + 1)


def test_list_documents_heals_drift(student):
    doc = documents.ingest_upload(student, upload_file())
    ledger.credit(student.student_id, 5000)

    listed = documents.list_documents(student)

    assert [d.id for d in listed] == [doc.id]
    assert _used(student) == doc.file_size


def test_search_is_case_insensitive_and_scoped(student, other_student):
    documents.ingest_upload(student, upload_file(filename="Physics_Notes.pdf"))
    documents.ingest_upload(student, upload_file(filename="chemistry.pdf"))
    documents.ingest_upload(other_student, upload_file(filename="physics_other.pdf"))

    found = documents.search_documents(student, "physics")

    assert len(found) == 1
    assert found[0].file_name.endswith("_Physics_Notes.pdf")


def test_search_treats_wildcards_literally(student):
    documents.ingest_upload(student, upload_file(filename="report.pdf"))

    assert documents.search_documents(student, "%") == []


def test_cascade_delete_removes_everything(admin, student, other_student):
    docs = [
        documents.ingest_upload(student, upload_file()),
        documents.ingest_upload(student, upload_file(PNG_BYTES, "scan.png", "image/png")),
    ]
    survivor = documents.ingest_upload(other_student, upload_file())
    student_id, user_id = student.student_id, student.id
    paths = [d.file_path for d in docs]

    summary = documents.delete_account(admin, user_id)

    assert summary == {"studentId": student_id, "documentsDeleted": 2, "blobFailures": []}
    assert db.session.get(User, user_id) is None
    assert Document.query.filter_by(student_id=student_id).count() == 0
    assert not any(storage.blob_exists(p) for p in paths)
    assert not os.path.isdir(storage.account_dir(student_id))
    assert ledger.reconcile(student_id) == 0
    assert storage.blob_exists(survivor.file_path)
    assert _used(other_student) == survivor.file_size


def test_cascade_continues_past_blob_failures(admin, student, monkeypatch):
    documents.ingest_upload(student, upload_file())
    documents.ingest_upload(student, upload_file(PNG_BYTES, "scan.png", "image/png"))
    real_delete = storage.delete_blob
    calls = []

    def flaky_delete(path):
        calls.append(path)
        if len(calls) == 1:
            raise storage.StorageIOError("disk on fire")
        return real_delete(path)

    monkeypatch.setattr(storage, "delete_blob", flaky_delete)

    summary = documents.delete_account(admin, student.id)

    assert len(calls) == 2
    assert len(summary["blobFailures"]) == 1
    assert summary["documentsDeleted"] == 2
    assert User.query.filter_by(role="student").count() == 0


def test_admin_cannot_delete_self(admin, student):
    doc = documents.ingest_upload(admin, upload_file())

    with pytest.raises(PolicyError):
        documents.delete_account(admin, admin.id)

    assert db.session.get(User, admin.id) is not None
    assert storage.blob_exists(doc.file_path)
    assert Document.query.count() == 1


def test_cascade_of_unknown_account(admin):
    with pytest.raises(NotFoundOrForbidden):
        documents.delete_account(admin, 9999)
