"""Spreadsheet store adapter layer - abstracts over the Sheets REST API."""

from app.adapters.sheets.base import AbstractSheetsClient
from app.adapters.sheets.factory import create_sheets_client
from app.adapters.sheets.google_client import GoogleSheetsClient

__all__ = [
    "AbstractSheetsClient",
    "GoogleSheetsClient",
    "create_sheets_client",
]
