"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any app import so the global settings
object is built from them.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from app.adapters.sheets.base import AbstractSheetsClient  # noqa: E402
from app.schemas.annotations import AnnotationRow  # noqa: E402


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, ms: float) -> None:
        self.current += ms


class FakeSheetsClient(AbstractSheetsClient):
    """In-memory stand-in for the spreadsheet store."""

    def __init__(self) -> None:
        self.appended: list[tuple[str, str, AnnotationRow]] = []
        self.formula_updates: list[tuple[str, str]] = []
        self.append_error: Exception | None = None
        self.closed = False

    async def append_annotation(self, access_token: str, spreadsheet_id: str, row: AnnotationRow) -> None:
        if self.append_error is not None:
            raise self.append_error
        self.appended.append((access_token, spreadsheet_id, row))

    async def update_payment_formulas(self, access_token: str, spreadsheet_id: str) -> None:
        self.formula_updates.append((access_token, spreadsheet_id))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sheets() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sample_annotation() -> dict:
    return {
        "row_id": "row-1",
        "annotator_id": "annotator-7",
        "claim_text": "The river flooded the town in 2020.",
        "source_links": ["https://example.org/a", "https://example.org/b"],
        "start_time": "2026-10-19T10:00:00Z",
        "end_time": "2026-10-19T10:12:00Z",
        "duration_minutes": 12,
        "status": "completed",
    }
