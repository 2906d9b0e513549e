from datetime import datetime, timezone
from flask_login import UserMixin
from portal import db


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    """Portal account, student or administrator."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(40), nullable=False, default="")
    student_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    department = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="student")
    password_hash = db.Column(db.String(200), nullable=False)

    # Ledger: bytes held by this account's live documents
    storage_used = db.Column(db.BigInteger, nullable=False, default=0)

    photo_path = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self):
        # Credentials never leave the model
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "studentId": self.student_id,
            "department": self.department,
            "role": self.role,
            "storageUsed": self.storage_used,
            "photoPath": self.photo_path,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.student_id}>"


class Document(db.Model):
    """Metadata record for one stored blob."""

    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    # Back-reference to User.student_id; the account is authoritative
    student_id = db.Column(db.String(64), nullable=False, index=True)
    file_name = db.Column(db.String(300), nullable=False)
    file_path = db.Column(db.String(500), unique=True, nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False)
    file_type = db.Column(db.String(16), nullable=False, default="unknown")
    category = db.Column(db.String(120))
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "studentId": self.student_id,
            "fileName": self.file_name,
            "filePath": self.file_path,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "category": self.category,
            "isFavorite": self.is_favorite,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Document {self.file_name}>"
