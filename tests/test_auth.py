"""Tests for auth module."""

import logging

import pytest

from espresso_mcp.auth import (
    PIN_SCOPES,
    AuthError,
    BearerTokenVerifier,
    get_auth_provider,
    require_writable,
)
from espresso_mcp.config import Config

TOKEN = "my-super-secret-token-32-chars!!"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("ESPRESSO_AUTH_TOKEN", raising=False)
    monkeypatch.delenv("ESPRESSO_READ_ONLY", raising=False)


class TestBearerTokenVerifier:
    """Tests for BearerTokenVerifier class."""

    @pytest.mark.asyncio
    async def test_empty_token_rejected(self, caplog):
        verifier = BearerTokenVerifier(TOKEN)

        with caplog.at_level(logging.WARNING, logger="espresso_mcp.auth"):
            assert await verifier.verify_token("") is None
        assert "without a bearer token" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, caplog):
        verifier = BearerTokenVerifier(TOKEN)

        with caplog.at_level(logging.WARNING, logger="espresso_mcp.auth"):
            assert await verifier.verify_token("wrong-token") is None
        assert "invalid bearer token" in caplog.text

    @pytest.mark.asyncio
    async def test_token_prefix_rejected(self):
        verifier = BearerTokenVerifier(TOKEN)

        assert await verifier.verify_token(TOKEN[:-1]) is None

    @pytest.mark.asyncio
    async def test_valid_token_accepted(self):
        verifier = BearerTokenVerifier(TOKEN)

        result = await verifier.verify_token(TOKEN)
        assert result is not None
        assert result.client_id == "espresso-client"
        assert result.token == TOKEN
        assert result.scopes == PIN_SCOPES


class TestGetAuthProvider:
    def test_returns_verifier_when_token_configured(self, monkeypatch):
        monkeypatch.setenv("ESPRESSO_AUTH_TOKEN", "x" * 32)
        assert isinstance(get_auth_provider(Config.from_env()), BearerTokenVerifier)

    def test_returns_none_when_no_token(self):
        assert get_auth_provider(Config.from_env()) is None

    @pytest.mark.asyncio
    async def test_provider_checks_configured_token(self, monkeypatch):
        monkeypatch.setenv("ESPRESSO_AUTH_TOKEN", TOKEN)
        provider = get_auth_provider(Config.from_env())

        assert await provider.verify_token(TOKEN) is not None
        assert await provider.verify_token("a" * 32) is None


class TestRequireWritable:
    def test_write_allowed_by_default(self):
        require_writable(Config.from_env(), "remove pins")

    def test_write_rejected_in_read_only_mode_env(self, monkeypatch):
        monkeypatch.setenv("ESPRESSO_READ_ONLY", "true")
        with pytest.raises(AuthError, match="read-only mode, cannot remove pins"):
            require_writable(Config.from_env(), "remove pins")

    def test_write_rejected_in_read_only_mode_cli(self, caplog):
        config = Config.from_env(read_only_override=True)

        with caplog.at_level(logging.WARNING, logger="espresso_mcp.auth"):
            with pytest.raises(AuthError, match="read-only mode"):
                require_writable(config, "reorder pins")
        assert "refused to reorder pins" in caplog.text

    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes"])
    def test_read_only_env_values(self, monkeypatch, value):
        monkeypatch.setenv("ESPRESSO_READ_ONLY", value)
        assert Config.from_env().read_only is True

    @pytest.mark.parametrize("value", ["0", "false", "no", ""])
    def test_read_only_false_values(self, monkeypatch, value):
        monkeypatch.setenv("ESPRESSO_READ_ONLY", value)
        assert Config.from_env().read_only is False


class TestTokenLength:
    def test_token_too_short_rejected(self, monkeypatch):
        monkeypatch.setenv("ESPRESSO_AUTH_TOKEN", "short")
        with pytest.raises(ValueError, match="at least 32 characters"):
            Config.from_env()

    def test_token_exactly_32_chars_accepted(self, monkeypatch):
        monkeypatch.setenv("ESPRESSO_AUTH_TOKEN", "a" * 32)
        assert Config.from_env().auth_token == "a" * 32
