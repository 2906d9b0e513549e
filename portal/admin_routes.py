import os

from flask import (
    Blueprint,
    Response,
    request,
    jsonify,
    current_app,
    send_file,
    url_for,
)
from flask_login import current_user

from portal import limiter
from portal import backup, documents
from portal.decorators import admin_required
from portal.departments import normalize_department
from portal.errors import ValidationError
from portal.models import User, Document
from portal.provisioning import create_account, hash_password, provision_accounts
from portal.roster import parse_roster, roster_template_csv

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  ACCOUNTS                                                          ║
# ╚══════════════════════════════════════════════════════════════════════╝

@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    users = User.query.order_by(User.id).all()
    return jsonify([u.to_dict() for u in users])


@admin_bp.route("/users", methods=["POST"])
@admin_required
def create_user():
    data = request.get_json(silent=True) or {}
    password = (data.get("password") or "").strip() or current_app.config[
        "DEFAULT_STUDENT_PASSWORD"
    ]
    role = data.get("role", "student")
    if role not in ("student", "admin"):
        raise ValidationError(f"Invalid role: {role}")

    user = create_account(
        name=(data.get("name") or "").strip(),
        email=data.get("email"),
        phone=(data.get("phone") or "").strip(),
        student_id=data.get("studentId"),
        department=normalize_department(data.get("department")),
        password_hash=hash_password(password),
        role=role,
    )
    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    summary = documents.delete_account(current_user, user_id)
    current_app.logger.info(
        f"Admin {current_user.student_id} deleted account {summary['studentId']}"
    )
    return jsonify(
        {
            "message": "User and all associated documents deleted successfully",
            **summary,
        }
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  DOCUMENTS                                                         ║
# ╚══════════════════════════════════════════════════════════════════════╝

@admin_bp.route("/documents", methods=["GET"])
@admin_required
def list_documents():
    docs = Document.query.order_by(Document.id).all()
    return jsonify([d.to_dict() for d in docs])


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  ROSTER UPLOAD                                                     ║
# ╚══════════════════════════════════════════════════════════════════════╝

@admin_bp.route("/upload-students", methods=["POST"])
@admin_required
@limiter.limit("10 per minute")
def upload_students():
    file = request.files.get("file")
    if not file or file.filename == "":
        raise ValidationError("No file uploaded")

    extension = os.path.splitext(file.filename)[1].lower()
    parsed = parse_roster(
        file.read(),
        extension,
        default_password=current_app.config["DEFAULT_STUDENT_PASSWORD"],
    )
    result = provision_accounts(parsed.records)

    body = result.to_dict()
    errors = [str(e) for e in parsed.errors] + body.pop("errors", [])
    if errors:
        body["errors"] = errors
    if parsed.skipped_rows:
        body["skippedRows"] = parsed.skipped_rows

    current_app.logger.info(
        f"Roster {file.filename}: created {result.created_count}, "
        f"{len(errors)} errors, {parsed.skipped_rows} rows skipped"
    )
    return jsonify(body)


@admin_bp.route("/download-template", methods=["GET"])
@admin_required
def download_template():
    return Response(
        roster_template_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": 'attachment; filename="student_template.csv"'},
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  BACKUP                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

@admin_bp.route("/backup-db", methods=["POST"])
@admin_required
def backup_db():
    filename, stats = backup.create_backup()
    return jsonify(
        {
            "message": "Backup completed successfully",
            "filename": filename,
            "downloadUrl": url_for("admin.download_backup", file=filename),
            "stats": stats,
        }
    )


@admin_bp.route("/download-backup", methods=["GET"])
@admin_required
def download_backup():
    name = request.args.get("file")
    if not name:
        raise ValidationError("File parameter is required")
    path = backup.resolve_backup(name)
    return send_file(
        path,
        mimetype="application/json",
        as_attachment=True,
        download_name=name,
    )
