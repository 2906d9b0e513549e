import os

from flask import (
    Blueprint,
    request,
    jsonify,
    current_app,
    send_file,
)
from flask_login import login_user, logout_user, login_required, current_user

from portal import db, bcrypt, limiter
from portal import documents, storage
from portal.departments import normalize_department
from portal.errors import ConflictError, StorageIOError, ValidationError
from portal.models import User
from portal.provisioning import EMAIL_RE, create_account, hash_password

main = Blueprint("main", __name__)


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  HELPERS                                                           ║
# ╚══════════════════════════════════════════════════════════════════════╝

def _payload() -> dict:
    """JSON body or form fields, whichever the client sent."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _account_summary(user):
    return {
        "_id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "studentId": user.student_id,
        "department": user.department,
        "role": user.role,
        "storageUsed": user.storage_used,
    }


def _allowed_photo(filename: str) -> bool:
    return (
        "." in filename
        and filename.rsplit(".", 1)[1].lower()
        in current_app.config["ALLOWED_PHOTO_EXTENSIONS"]
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  AUTHENTICATION                                                    ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/register", methods=["POST"])
@limiter.limit("10 per minute")
def register():
    data = _payload()
    password = (data.get("password") or "").strip()

    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters.")

    user = create_account(
        name=(data.get("name") or "").strip(),
        email=data.get("email"),
        phone=(data.get("phone") or "").strip(),
        student_id=data.get("studentId"),
        department=normalize_department(data.get("department")),
        password_hash=hash_password(password),
    )
    current_app.logger.info(f"Self-registration: {user.student_id}")
    return jsonify({"message": "Account created", "user": user.to_dict()}), 201


@main.route("/login", methods=["POST"])
@limiter.limit("20 per minute")
def login():
    data = _payload()
    email = (data.get("email") or "").strip().lower()
    password = (data.get("password") or "").strip()

    user = User.query.filter_by(email=email).first()

    if user and bcrypt.check_password_hash(user.password_hash, password):
        login_user(user, remember=True)
        return jsonify({"message": "Logged in", "user": _account_summary(user)})

    return jsonify({"error": "Invalid email or password"}), 401


@main.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Logged out"})


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  DOCUMENTS  (Read)                                                 ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/documents", methods=["GET"])
@login_required
def list_documents():
    docs = documents.list_documents(current_user)
    return jsonify(
        {
            "documents": [d.to_dict() for d in docs],
            "user": _account_summary(current_user),
        }
    )


@main.route("/documents/search", methods=["GET"])
@login_required
def search_documents():
    docs = documents.search_documents(current_user, request.args.get("query", ""))
    return jsonify([d.to_dict() for d in docs])


@main.route("/documents/<int:doc_id>/download", methods=["GET"])
@login_required
def download_document(doc_id):
    doc = documents.resolve_download(current_user, doc_id)
    return send_file(
        storage.open_blob(doc.file_path),
        as_attachment=True,
        download_name=doc.file_name,
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  UPLOAD  (Create)                                                  ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/documents", methods=["POST"])
@login_required
def upload():
    file = request.files.get("file")
    category = (request.form.get("category") or "").strip() or None

    doc = documents.ingest_upload(current_user, file, category)

    current_app.logger.info(
        f"{current_user.student_id} uploaded {doc.file_name} ({doc.file_size} bytes)"
    )
    return (
        jsonify(
            {
                "message": "File uploaded successfully",
                "document": doc.to_dict(),
                "user": _account_summary(current_user),
            }
        ),
        201,
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  FAVORITE  (Update)                                                ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/documents/<int:doc_id>/favorite", methods=["PATCH"])
@login_required
def toggle_favorite(doc_id):
    doc = documents.toggle_favorite(current_user, doc_id)
    return jsonify({"message": "Favorite status updated", "document": doc.to_dict()})


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  DELETE  (Delete)                                                  ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/documents/<int:doc_id>", methods=["DELETE"])
@login_required
def delete_document(doc_id):
    documents.delete_document(current_user, doc_id)
    return jsonify(
        {
            "message": "Document deleted successfully",
            "user": _account_summary(current_user),
        }
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  PROFILE                                                           ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/profile", methods=["GET"])
@login_required
def profile():
    return jsonify({"user": current_user.to_dict()})


@main.route("/profile", methods=["PATCH"])
@login_required
def update_profile():
    data = _payload()
    user = current_user
    email = (data.get("email") or "").strip().lower()

    if email:
        if not EMAIL_RE.match(email):
            raise ValidationError(f"Invalid email address: {email}")
        taken = User.query.filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ConflictError("Email already exists")
        user.email = email

    replaced_photo = None
    photo = request.files.get("photo")
    if photo and photo.filename:
        if not _allowed_photo(photo.filename):
            raise ValidationError("Profile photo must be a PNG, JPEG or GIF image.")
        blob = storage.write_blob(user.student_id, photo)
        replaced_photo = user.photo_path
        user.photo_path = os.path.abspath(blob.path)

    db.session.commit()

    if replaced_photo and replaced_photo != user.photo_path:
        try:
            storage.delete_blob(replaced_photo)
        except StorageIOError as e:
            # Left for sweep-orphans
            current_app.logger.warning(f"Old photo {replaced_photo} not removed: {e.message}")

    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()})
