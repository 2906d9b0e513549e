"""
Blob store: physical files under ``UPLOAD_FOLDER/<studentId>/``.

The database never sees bytes; it only keeps the path returned here.
"""

import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import secure_filename

from portal.errors import StorageIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    path: str
    file_name: str
    size: int


def upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def account_dir(student_id: str) -> str:
    return os.path.join(upload_root(), secure_filename(student_id) or "_")


def write_blob(student_id: str, file_storage) -> StoredBlob:
    """Write an uploaded file into the owner's directory."""
    original = file_storage.filename or "upload"
    file_name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{secure_filename(original) or 'upload'}"
    directory = account_dir(student_id)
    path = os.path.join(directory, file_name)

    try:
        os.makedirs(directory, exist_ok=True)
        file_storage.save(path)
        size = os.path.getsize(path)
    except OSError as e:
        logger.error("Blob write failed for %s: %s", path, e)
        raise StorageIOError("Could not store the uploaded file.")

    return StoredBlob(path=path, file_name=file_name, size=size)


def delete_blob(path: str) -> bool:
    """Remove one blob. Returns False if it was already gone."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("Blob delete failed for %s: %s", path, e)
        raise StorageIOError(f"Could not delete stored file {os.path.basename(path)}.")
    return True


def blob_exists(path: str) -> bool:
    return bool(path) and os.path.isfile(path)


def open_blob(path: str):
    """Binary stream for reading; caller closes it."""
    return open(path, "rb")


def remove_account_dir(student_id: str) -> bool:
    directory = account_dir(student_id)
    if not os.path.isdir(directory):
        return False
    shutil.rmtree(directory)
    return True


def iter_blobs():
    """Yield the path of every file in the store."""
    for dirpath, _dirnames, filenames in os.walk(upload_root()):
        for name in filenames:
            yield os.path.join(dirpath, name)
