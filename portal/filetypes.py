"""
Content-type detection for uploaded documents.

Priority: byte signature of the stored blob, then the mimetype the client
declared, then the filename extension. Result is one of ``FILE_TYPES``.

A recognised container signature is final: a ZIP that is neither DOCX nor
XLSX (pptx, odt, plain archives) is ``unknown`` whatever the client claims.
"""

import os
import zipfile

FILE_TYPES = ("pdf", "image", "word", "excel", "text", "unknown")

_SIGNATURES = [
    (b"%PDF-", "pdf"),
    (b"\x89PNG\r\n\x1a\n", "image"),
    (b"\xff\xd8\xff", "image"),
    (b"GIF87a", "image"),
    (b"GIF89a", "image"),
]
_ZIP_MAGIC = b"PK\x03\x04"
# Compound File Binary: legacy .doc / .xls (and .ppt, .msg)
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

_EXTENSIONS = {
    ".pdf": "pdf",
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
    ".doc": "word",
    ".docx": "word",
    ".xls": "excel",
    ".xlsx": "excel",
    ".txt": "text",
}


def _from_zip(path):
    try:
        with zipfile.ZipFile(path) as zf:
            names = zf.namelist()
    except zipfile.BadZipFile:
        return "unknown"
    # OOXML: tell .docx from .xlsx by the package layout
    if any(n.startswith("word/") for n in names):
        return "word"
    if any(n.startswith("xl/") for n in names):
        return "excel"
    return "unknown"


def _from_signature(path, mimetype=None, filename=None):
    try:
        with open(path, "rb") as f:
            head = f.read(16)
    except OSError:
        return None

    for magic, file_type in _SIGNATURES:
        if head.startswith(magic):
            return file_type

    if head.startswith(_ZIP_MAGIC):
        return _from_zip(path)

    if head.startswith(_OLE2_MAGIC):
        # The container does not say which Office program wrote it
        hint = _from_mimetype(mimetype) or _from_extension(filename)
        return hint if hint in ("word", "excel") else "unknown"
    return None


def _from_mimetype(mimetype):
    if not mimetype or mimetype == "application/octet-stream":
        return None
    mimetype = mimetype.lower()
    if "pdf" in mimetype:
        return "pdf"
    if mimetype.startswith("image/"):
        return "image"
    if "ms-excel" in mimetype or "spreadsheetml" in mimetype:
        return "excel"
    if "msword" in mimetype or "wordprocessingml" in mimetype:
        return "word"
    if mimetype.startswith("text/"):
        return "text"
    return None


def _from_extension(filename):
    ext = os.path.splitext(filename or "")[1].lower()
    return _EXTENSIONS.get(ext)


def detect_file_type(path=None, mimetype=None, filename=None) -> str:
    return (
        (path and _from_signature(path, mimetype, filename))
        or _from_mimetype(mimetype)
        or _from_extension(filename)
        or "unknown"
    )
