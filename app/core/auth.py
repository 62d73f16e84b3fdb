"""Caller authentication for the annotation API.

Two key lists come from the environment: ``APP_API_KEYS`` for annotators'
clients and ``APP_ADMIN_API_KEYS`` for the admin endpoints (admin keys also
work on regular routes). The acting user's spreadsheet credential travels in
``X-Sheets-Access-Token``; it is passed through to the store, never checked
here.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

ApiKeyHeader = Annotated[str | None, Header(alias="X-API-Key")]


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Split a comma-separated key list, dropping blanks.

    >>> sorted(parse_api_keys("a, b ,,c"))
    ['a', 'b', 'c']
    """
    if not keys_string:
        return set()
    return {part.strip() for part in keys_string.split(",") if part.strip()}


def key_fingerprint(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def _accepted_keys(admin: bool) -> set[str]:
    admin_keys = parse_api_keys(settings.app.admin_api_keys)
    if admin:
        return admin_keys
    return parse_api_keys(settings.app.api_keys) | admin_keys


def is_known_api_key(api_key: str | None) -> bool:
    """True when ``api_key`` is one of the configured regular or admin keys."""
    return bool(api_key) and api_key in _accepted_keys(admin=False)


def validate_api_key(provided_key: str, *, admin: bool = False) -> None:
    """Check ``provided_key`` against the configured lists.

    Raises:
        AuthenticationAppError: ``api_keys_not_configured`` when auth is on but
            no key list is set, ``invalid_api_key`` when the key is unknown.
    """
    if not settings.app.api_key_required:
        return

    accepted = _accepted_keys(admin)
    if not accepted:
        logger.error("auth.no_keys_configured", extra={"admin": admin})
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS / APP_ADMIN_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if provided_key not in accepted:
        logger.warning(
            "auth.rejected",
            extra={"api_key_hash": key_fingerprint(provided_key), "admin": admin},
        )
        raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")


def _check_header(x_api_key: str | None, *, admin: bool) -> None:
    if not settings.app.api_key_required:
        return

    if not x_api_key:
        logger.warning("auth.missing_key", extra={"admin": admin})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key, admin=admin)
    except AuthenticationAppError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc


async def verify_api_key(x_api_key: ApiKeyHeader = None) -> None:
    """Dependency guarding annotator routes (403 on failure)."""
    _check_header(x_api_key, admin=False)


async def verify_admin_api_key(x_api_key: ApiKeyHeader = None) -> None:
    """Dependency guarding admin routes; regular keys get 403."""
    _check_header(x_api_key, admin=True)


async def require_sheets_access_token(
    x_sheets_access_token: Annotated[str | None, Header(alias="X-Sheets-Access-Token")] = None,
) -> str:
    """Return the caller's spreadsheet token, 403 when absent or blank."""
    token = (x_sheets_access_token or "").strip()
    if not token:
        logger.warning("auth.missing_sheets_token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing spreadsheet access token. Provide X-Sheets-Access-Token header.",
        )
    return token
