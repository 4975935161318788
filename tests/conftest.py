# tests/conftest.py
import pytest

from padelbot import create_app
from padelbot.models import ensure_db, MessageStateStore
from padelbot.sync import Synchronizer
from tests.factories import BOT_USERNAME, CHAT_ID, FakeTelegramClient

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "padelbot.db")
    ensure_db(path)
    return path


@pytest.fixture
def fake_tg():
    return FakeTelegramClient(username=BOT_USERNAME)


@pytest.fixture
def store(db_path):
    return MessageStateStore(db_path, lease_seconds=30)


@pytest.fixture
def synchronizer(db_path, fake_tg, store):
    return Synchronizer(db_path, fake_tg, store, CHAT_ID)


@pytest.fixture
def app(db_path, fake_tg):
    app = create_app(
        "test",
        overrides={
            "SQLITE_PATH": db_path,
            "TELEGRAM_CLIENT": fake_tg,
            "CHAT_ID": CHAT_ID,
            "TELEGRAM_WEBHOOK_SECRET": WEBHOOK_SECRET,
            "BOT_USERNAME": BOT_USERNAME,
            "INTERNAL_API_TOKEN": None,
            "OPENAI_API_KEY": None,
            "LATE_CANCEL_HOURS": 24.0,
            "CLEANUP_DELAY_SECONDS": 0.0,
        },
    )
    app.config.update(
        TESTING=True,
        DRY_RUN=True,
        PORT=5001,
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def webhook_headers():
    return {"X-Telegram-Bot-Api-Secret-Token": WEBHOOK_SECRET}
