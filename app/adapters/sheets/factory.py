"""Factory for creating the spreadsheet store client."""

from app.adapters.sheets.base import AbstractSheetsClient
from app.adapters.sheets.google_client import GoogleSheetsClient
from app.core.config import SheetsSettings, settings
from app.core.errors import ValidationAppError


def create_sheets_client(sheets_settings: SheetsSettings | None = None) -> AbstractSheetsClient:
    """Instantiate the Sheets client from configuration.

    Args:
        sheets_settings: Optional settings; defaults to global settings.

    Returns:
        AbstractSheetsClient: Configured client instance.

    Raises:
        ValidationAppError: If the configured base URL is not an HTTP(S) URL.
    """
    cfg = sheets_settings or settings.sheets

    if not cfg.base_url.startswith(("http://", "https://")):
        raise ValidationAppError(
            code="sheets_invalid_base_url",
            message=f"SHEETS_BASE_URL must be an http(s) URL, got '{cfg.base_url}'",
        )

    return GoogleSheetsClient(
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
    )
