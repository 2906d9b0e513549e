"""
Student Portal - test configuration and fixtures
"""
import csv
import io
import itertools
from types import SimpleNamespace

import openpyxl
import pytest
from werkzeug.datastructures import FileStorage

from portal import create_app, db, bcrypt
from portal.config import TestConfig
from portal.models import User

PASSWORD = "testpassword123"
PDF_BYTES = b"%PDF-1.4\n% test document\n" + b"0" * 200 + b"\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def app(tmp_path):
    """Fresh app, database and blob store for each test"""

    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"
        UPLOAD_FOLDER = str(tmp_path / "uploads")
        BACKUP_FOLDER = str(tmp_path / "backups")

    return create_app(_Config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Application context for tests that call the services directly"""
    with app.app_context():
        yield


@pytest.fixture
def make_user(app):
    """Factory that inserts an account and returns its plain attributes"""
    counter = itertools.count(1)

    def _make(role="student", password=PASSWORD, **fields):
        n = next(counter)
        values = {
            "name": f"Student {n}",
            "email": f"student{n}@example.com",
            "phone": "9000000000",
            "student_id": f"STU{n:03d}",
            "department": "physics",
        }
        values.update(fields)
        with app.app_context():
            user = User(
                role=role,
                password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
                **values,
            )
            db.session.add(user)
            db.session.commit()
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                student_id=user.student_id,
                password=password,
            )

    return _make


@pytest.fixture
def student(ctx, make_user):
    return db.session.get(User, make_user().id)


@pytest.fixture
def other_student(ctx, make_user):
    return db.session.get(User, make_user().id)


@pytest.fixture
def admin(ctx, make_user):
    return db.session.get(User, make_user(role="admin", department="mathematics").id)


@pytest.fixture
def login(client):
    def _login(account):
        response = client.post(
            "/login", json={"email": account.email, "password": account.password}
        )
        assert response.status_code == 200
        return response

    return _login


def upload_file(data=PDF_BYTES, filename="notes.pdf", content_type="application/pdf"):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


def csv_bytes(rows):
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerows(rows)
    return buffer.getvalue().encode("utf-8")


def xlsx_bytes(rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


HEADERS = ["name", "email", "phone", "studentid", "department"]


def roster_rows(count, start=1, department="Physics"):
    return [
        [f"Roster {i}", f"roster{i}@example.com", f"98765{i:05d}", f"R{i:04d}", department]
        for i in range(start, start + count)
    ]
