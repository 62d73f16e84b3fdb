"""Unit tests for API key authentication module."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from app.core.auth import (
    is_known_api_key,
    parse_api_keys,
    require_sheets_access_token,
    validate_api_key,
    verify_admin_api_key,
    verify_api_key,
)
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_multiple_keys(self) -> None:
        assert parse_api_keys("key1,key2,key3") == {"key1", "key2", "key3"}

    def test_parse_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs(self, raw) -> None:
        assert parse_api_keys(raw) == set()


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("app.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key("", admin=True)

    @patch("app.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None
        mock_settings.app.admin_api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("app.core.auth.settings")
    def test_validate_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"
        mock_settings.app.admin_api_keys = None

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("app.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1"
        mock_settings.app.admin_api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"

    @patch("app.core.auth.settings")
    def test_admin_keys_are_valid_everywhere(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "user-key"
        mock_settings.app.admin_api_keys = "admin-key"

        validate_api_key("admin-key")
        validate_api_key("admin-key", admin=True)

    @patch("app.core.auth.settings")
    def test_known_key_lookup(self, mock_settings) -> None:
        mock_settings.app.api_keys = "user-key"
        mock_settings.app.admin_api_keys = "admin-key"

        assert is_known_api_key("user-key") is True
        assert is_known_api_key("admin-key") is True
        assert is_known_api_key("made-up-key") is False
        assert is_known_api_key(None) is False

    @patch("app.core.auth.settings")
    def test_regular_keys_are_not_admin(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "user-key"
        mock_settings.app.admin_api_keys = "admin-key"

        with pytest.raises(AuthenticationAppError):
            validate_api_key("user-key", admin=True)


class TestDependencies:
    """Test FastAPI dependencies for API key verification."""

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        await verify_api_key(x_api_key=None)
        await verify_admin_api_key(x_api_key=None)

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_header_missing(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "Missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_admin_rejects_regular_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "user-key"
        mock_settings.app.admin_api_keys = "admin-key"

        await verify_api_key(x_api_key="user-key")
        with pytest.raises(HTTPException) as exc_info:
            await verify_admin_api_key(x_api_key="user-key")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_sheets_token_is_required(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await require_sheets_access_token(x_sheets_access_token="  ")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_sheets_token_is_returned_trimmed(self) -> None:
        assert await require_sheets_access_token(x_sheets_access_token=" ya29.t ") == "ya29.t"
