"""On-demand JSON snapshot of every account and document."""

import json
import logging
import os
from datetime import datetime, timezone

from flask import current_app

from portal.errors import NotFound
from portal.models import Document, User

logger = logging.getLogger(__name__)


def backup_dir() -> str:
    return current_app.config["BACKUP_FOLDER"]


def create_backup():
    """Write a snapshot file. Returns ``(filename, stats)``."""
    now = datetime.now(timezone.utc)
    users = [u.to_dict() for u in User.query.order_by(User.id).all()]
    documents = [d.to_dict() for d in Document.query.order_by(Document.id).all()]

    data = {
        "timestamp": now.isoformat(),
        "users": users,
        "documents": documents,
        "totalUsers": len(users),
        "totalDocuments": len(documents),
    }

    os.makedirs(backup_dir(), exist_ok=True)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
    filename = f"data-backup-{stamp}.json"
    with open(os.path.join(backup_dir(), filename), "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    logger.info("Backup %s written (%d users, %d documents)", filename, len(users), len(documents))
    return filename, {"users": len(users), "documents": len(documents)}


def resolve_backup(filename) -> str:
    """Absolute path of an existing backup; anything else is NotFound."""
    if not filename or os.path.basename(filename) != filename or filename.startswith("."):
        raise NotFound("Backup file not found")
    path = os.path.abspath(os.path.join(backup_dir(), filename))
    if not os.path.isfile(path):
        raise NotFound("Backup file not found")
    return path
