import os
from dotenv import load_dotenv

load_dotenv()

_BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    """Application configuration loaded from environment variables."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")

    # Database — defaults to SQLite, overridable via DATABASE_URL for PostgreSQL
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///portal.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # PostgreSQL connection pooling (ignored by SQLite)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # Blob store, one sub-directory per studentId
    UPLOAD_FOLDER = os.environ.get(
        "UPLOADS_DIR", os.path.join(_BASE_DIR, "uploads")
    )
    BACKUP_FOLDER = os.environ.get(
        "BACKUPS_DIR", os.path.join(_BASE_DIR, "backups")
    )
    MAX_CONTENT_LENGTH = 20 * 1024 * 1024  # 20 MB request cap
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB per document
    ALLOWED_FILE_TYPES = {"pdf", "image", "word", "excel", "text"}
    ALLOWED_PHOTO_EXTENSIONS = {"png", "jpg", "jpeg", "gif"}

    # Roster ingestion
    DEFAULT_STUDENT_PASSWORD = os.environ.get(
        "DEFAULT_STUDENT_PASSWORD", "defaultpassword123"
    )

    # Heal ledger drift whenever a user lists their documents
    RECONCILE_ON_LIST = True

    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    """Configuration used by the test-suite."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    LOG_LEVEL = "DEBUG"
