import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from registration_webapp.main import create_app
from shared.config import Settings


class FakeSheetsClient:
    """In-memory stand-in for SheetsClient."""

    def __init__(self, rows=None, fail=False):
        self.rows = [list(r) for r in (rows or [])]
        self.fail = fail
        self.deleted = []

    def get_rows(self):
        if self.fail:
            raise RuntimeError("sheets unavailable")
        return [list(r) for r in self.rows]

    def write_header(self, header):
        self.rows.insert(0, list(header))

    def append_row(self, values):
        if self.fail:
            raise RuntimeError("sheets unavailable")
        self.rows.append(list(values))

    def delete_row(self, row_index):
        self.deleted.append(row_index)
        del self.rows[row_index]


def make_settings(tmp_path, **overrides):
    values = dict(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        admin_password=None,
        environment="development",
        enable_google_sheets=False,
        google_sheets_credentials=None,
        google_service_account_json_path=None,
        google_sheet_id=None,
        client_origin=None,
        local_logs=None,
        rate_limit_per_min=0,
    )
    values.update(overrides)
    return Settings(**values)


def image_bytes(fmt="PNG", size=(40, 30), mode="RGB", color=(200, 100, 50)):
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def fake_sheets():
    return FakeSheetsClient()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def png_bytes():
    return image_bytes()


@pytest.fixture
def registration():
    return {
        "name": "Julieta Madrigal",
        "email": "julieta@example.com",
        "phone": "555-0101",
        "city": "Encanto",
        "relationshipType": "Child",
        "connectedThrough": "Alma Madrigal",
        "generation": "2",
        "familyBranch": "Julieta & Agustin",
        "attendees": "3",
    }
