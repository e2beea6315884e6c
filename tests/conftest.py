import pytest

from linksaver import create_app
from linksaver.config import TestConfig
from linksaver.extensions import db
from linksaver.store import RecordStore


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        ASSET_DIR = str(tmp_path / "assets")

    app = create_app(_Config)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def source_store():
    store = RecordStore.open("sqlite://", label="source")
    yield store
    store.close()


@pytest.fixture
def destination_store():
    store = RecordStore.open("sqlite://", label="destination")
    yield store
    store.close()
