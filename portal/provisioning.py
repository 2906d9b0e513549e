"""
Account creation: single records and best-effort roster batches.

Every record is committed on its own. A failing record is reported and the
batch moves on; nothing already created is rolled back.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from portal import bcrypt, db
from portal.departments import is_valid_department
from portal.errors import ConflictError, PortalError, ValidationError
from portal.models import User

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class PerRecordError:
    name: str
    email: str
    student_id: str
    reason: str

    def __str__(self):
        return f"Student {self.name} ({self.email}, ID {self.student_id}): {self.reason}"


@dataclass
class ProvisionResult:
    created_count: int = 0
    errors: List[PerRecordError] = field(default_factory=list)

    def to_dict(self):
        body = {
            "message": f"Successfully created {self.created_count} students",
            "created": self.created_count,
        }
        if self.errors:
            body["errors"] = [str(e) for e in self.errors]
        return body


def hash_password(password: str) -> str:
    return bcrypt.generate_password_hash(password).decode("utf-8")


def validate_account_fields(email, department, student_id, name):
    """Raise ValidationError for the first field that fails."""
    if not email or not EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {email or '(empty)'}")
    if not is_valid_department(department):
        raise ValidationError(f"Invalid department: {department or '(empty)'}")
    if not name:
        raise ValidationError("Name is required.")
    if not student_id:
        raise ValidationError("Student ID is required.")


def create_account(
    *,
    name,
    email,
    phone,
    student_id,
    department,
    password_hash,
    role="student",
):
    """Validate and insert one account; commits on success.

    ``department`` must already be normalised. Raises ValidationError or
    ConflictError without touching the database on failure.
    """
    email = (email or "").strip().lower()
    student_id = (student_id or "").strip()
    validate_account_fields(email, department, student_id, name)

    existing = User.query.filter(
        or_(User.email == email, User.student_id == student_id)
    ).first()
    if existing:
        raise ConflictError(
            f"Student with email {email} or ID {student_id} already exists"
        )

    user = User(
        name=name,
        email=email,
        phone=phone or "",
        student_id=student_id,
        department=department,
        role=role,
        password_hash=password_hash,
        storage_used=0,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same email / id
        db.session.rollback()
        raise ConflictError(
            f"Student with email {email} or ID {student_id} already exists"
        )

    logger.info("Created %s account %s", role, student_id)
    return user


def provision_accounts(records) -> ProvisionResult:
    """Create an account for each roster record, collecting failures."""
    result = ProvisionResult()
    hashes = {}

    for record in records:
        # All roster rows normally share one default password; hash it once
        if record.password not in hashes:
            hashes[record.password] = hash_password(record.password)

        try:
            create_account(
                name=record.name,
                email=record.email,
                phone=record.phone,
                student_id=record.student_id,
                department=record.department,
                password_hash=hashes[record.password],
                role=record.role,
            )
        except PortalError as e:
            result.errors.append(
                PerRecordError(record.name, record.email, record.student_id, e.message)
            )
            continue

        result.created_count += 1

    logger.info(
        "Roster provisioning: %d created, %d rejected",
        result.created_count,
        len(result.errors),
    )
    return result
