"""Access control for espressoMCP.

Two independent switches guard the server: an optional bearer token checked
on every MCP request, and read-only mode, which keeps tools from editing org
files or saved settings.
"""

import hmac
import logging

from fastmcp.server.auth import AccessToken, TokenVerifier

from espresso_mcp.config import Config

logger = logging.getLogger(__name__)

PIN_SCOPES = ["pins:read", "pins:write"]


class AuthError(Exception):
    """Raised when a tool is not allowed to change anything."""


class BearerTokenVerifier(TokenVerifier):
    """Accepts exactly one shared token, set with ESPRESSO_AUTH_TOKEN."""

    def __init__(self, token: str):
        super().__init__()
        self._expected = token.encode("utf-8")

    async def verify_token(self, token: str) -> AccessToken | None:
        if not token:
            logger.warning("Rejected request without a bearer token")
            return None
        if not hmac.compare_digest(token.encode("utf-8"), self._expected):
            logger.warning("Rejected request with an invalid bearer token")
            return None
        return AccessToken(token=token, client_id="espresso-client", scopes=PIN_SCOPES)


def get_auth_provider(config: Config) -> BearerTokenVerifier | None:
    """Token verifier for FastMCP, or None to serve without authentication."""
    if config.auth_token is None:
        return None
    return BearerTokenVerifier(config.auth_token)


def require_writable(config: Config, action: str) -> None:
    """
    Refuse an edit while the server runs read-only.

    Args:
        config: Server configuration
        action: What the caller was about to do, used in the error message

    Raises:
        AuthError: If read-only mode is on
    """
    if config.read_only:
        logger.warning("Read-only mode: refused to %s", action)
        raise AuthError(f"Server is in read-only mode, cannot {action}")
