import io

import pytest

import database
from app import create_app


@pytest.fixture
def storage_root(tmp_path):
    return str(tmp_path / "uploads")


@pytest.fixture
def app(tmp_path, storage_root):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": f"sqlite:///{tmp_path / 'invoices.db'}",
        "UPLOADS_FOLDER": storage_root,
    })
    yield app
    database.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_pdf():
    """Builds a multipart file tuple for the Flask test client."""
    def _make(content=b"%PDF-1.4 test document", name="scan.pdf", mimetype="application/pdf"):
        return (io.BytesIO(content), name, mimetype)
    return _make
