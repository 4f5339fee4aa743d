"""
Shared fixtures.

Settings are read from the environment, so every test gets a clean,
fully specified environment and a fresh settings cache. No test talks
to Google Sheets or Gemini.
"""

from datetime import date
from types import SimpleNamespace
from typing import Optional

import pytest

from fintrack.config import get_settings
from fintrack.models import Transaction, TransactionType


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("GEMINI_MAX_RETRIES", "1")
    monkeypatch.setenv("OWNER_ID", "local-user")
    monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
    monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_txn(
    txn_type: str,
    amount: float,
    category: str = "General",
    on: Optional[date] = None,
    **extra,
) -> Transaction:
    return Transaction(
        date=on or date(2024, 3, 15),
        type=TransactionType(txn_type),
        category=category,
        amount=amount,
        **extra,
    )


class FakeGeminiModel:
    """Stands in for genai.GenerativeModel; replays canned replies in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


@pytest.fixture
def txn():
    return make_txn


@pytest.fixture
def fake_model():
    return FakeGeminiModel
