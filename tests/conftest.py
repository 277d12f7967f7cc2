"""
Pytest configuration and shared fixtures.
This file ensures the project root is in sys.path for imports and that
importing the app never talks to real services.
"""

import os
import sys
from datetime import date
from pathlib import Path

os.environ.setdefault("ACCESS_TOKEN", "test-access-token")
os.environ.setdefault("SECRET_CHANNEL", "test-channel-secret")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("GOOGLE_APPS_SCRIPT_URL", None)

# Add project root to sys.path so we can import controller, sessions, etc.
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest

from controller import ConversationController
from errors import ExtractionError, LedgerError
from meals import MealEntry
from sessions import SessionStore


class FakeChannel:
    def __init__(self):
        self.replies = []
        self.pushes = []
        self.media = (b"\xff\xd8fake-jpeg", "image/jpeg")
        self.fetch_error = None
        self.push_error_for = set()

    def reply(self, reply_token, text, quick_replies=None):
        self.replies.append((reply_token, text, quick_replies))

    def push(self, to, text, quick_replies=None):
        if to in self.push_error_for:
            raise RuntimeError("push failed")
        self.pushes.append((to, text, quick_replies))

    def fetch_media(self, message_id):
        if self.fetch_error:
            raise self.fetch_error
        return self.media


class FakeExtractor:
    def __init__(self):
        self.results = []
        self.calls = []

    def extract(self, image_data, content_type=""):
        self.calls.append((image_data, content_type))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeLedger:
    def __init__(self):
        self.rows = []
        self.fail_for = set()

    def upsert(self, sender, row):
        if sender in self.fail_for:
            raise LedgerError("sheet unreachable")
        self.rows.append((sender, row))
        return row


class Clock:
    def __init__(self, today=date(2026, 3, 14)):
        self.today = today

    def __call__(self):
        return self.today


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(clock):
    return SessionStore(today=clock)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def controller(store, extractor, ledger, channel):
    return ConversationController(store, extractor, ledger, channel)


@pytest.fixture
def chicken_salad():
    return MealEntry(meal="Chicken salad", calories=450, protein_g=40, carbs_g=20, fat_g=18, fiber_g=6)


@pytest.fixture
def extraction_error():
    return ExtractionError("Could not read nutrition data from the photo")
