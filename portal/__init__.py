import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from portal.config import Config

# ── Extension instances (created once, initialised in create_app) ──────────
db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
)


def create_app(config_class=Config):
    """Application factory — creates and configures the Flask app."""

    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Ensure storage directories exist
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    os.makedirs(app.config["BACKUP_FOLDER"], exist_ok=True)

    # Initialise extensions
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # ── User loader callback ──────────────────────────────────────────
    from portal.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    from flask import jsonify

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # ── Register blueprints ─────────────────────────────────────────
    from portal.routes import main
    from portal.admin_routes import admin_bp

    app.register_blueprint(main)
    app.register_blueprint(admin_bp)

    # ── Error handlers ────────────────────────────────────────────────
    from portal.errors import PortalError

    @app.errorhandler(PortalError)
    def portal_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "Access denied: Admins only"}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Upload exceeds the maximum request size"}), 413

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return (
            jsonify(
                {
                    "error": "Too many requests. Please wait a moment before trying again.",
                    "retry_after": str(e.description),
                }
            ),
            429,
        )

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    # ── CLI commands ──────────────────────────────────────────────────
    import click

    @app.cli.command("create-admin")
    @click.argument("email")
    def create_admin(email):
        """Promote an existing user to admin role."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo(f"Error: User '{email}' not found.")
            return
        user.role = "admin"
        db.session.commit()
        click.echo(f"✓ User '{email}' is now an admin.")

    @app.cli.command("reconcile-storage")
    @click.option("--student-id", default=None, help="Only reconcile this account.")
    def reconcile_storage(student_id):
        """Recompute storageUsed from the documents on record."""
        from portal import ledger

        if student_id:
            totals = {student_id: ledger.reconcile(student_id)}
        else:
            totals = ledger.reconcile_all()
        for sid, total in sorted(totals.items()):
            click.echo(f"{sid}: {total} bytes")

    @app.cli.command("sweep-orphans")
    @click.option("--delete", is_flag=True, help="Remove the orphaned blobs.")
    def sweep_orphans(delete):
        """List blobs that no document or profile photo refers to."""
        from portal import storage
        from portal.models import Document

        known = {os.path.abspath(p) for (p,) in db.session.query(Document.file_path)}
        known |= {
            os.path.abspath(p)
            for (p,) in db.session.query(User.photo_path).filter(User.photo_path.isnot(None))
        }
        orphans = [p for p in storage.iter_blobs() if os.path.abspath(p) not in known]
        for path in orphans:
            if delete:
                storage.delete_blob(path)
            click.echo(("removed " if delete else "") + path)
        click.echo(f"{len(orphans)} orphaned blob(s).")

    # Create tables on first run (development convenience)
    with app.app_context():
        db.create_all()

    return app
