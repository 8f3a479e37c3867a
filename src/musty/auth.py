"""Credential checks for login and bearer-token auth for the MCP transport."""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
from abc import ABC
from abc import abstractmethod

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Login credential verification
# ---------------------------------------------------------------------------


class CredentialVerifier(ABC):
    """Decides whether a supplied credential matches the stored one."""

    @abstractmethod
    def matches(self, stored: str, supplied: str) -> bool: ...


class PlainCredentialVerifier(CredentialVerifier):
    """Plain equality against the stored value; no hashing or salting."""

    def matches(self, stored: str, supplied: str) -> bool:
        return stored == supplied


# ---------------------------------------------------------------------------
# Transport auth
# ---------------------------------------------------------------------------


class APIKeyVerifier(TokenVerifier):
    """Static bearer-token verifier for MCP requests."""

    def __init__(self, api_key: str, *, scopes: list[str] | None = None) -> None:
        normalized = api_key.strip()
        if not normalized:
            raise ValueError("api_key must be a non-empty, non-whitespace string")
        super().__init__()
        self._api_key = normalized
        self._scopes = scopes[:] if scopes else ["musty:all"]

    async def verify_token(self, token: str) -> AccessToken | None:
        """Return an access token when the provided bearer token is valid."""
        if hmac.compare_digest(token, self._api_key):
            return AccessToken(
                token=token,
                client_id="musty-client",
                scopes=self._scopes,
                expires_at=None,
            )

        token_fingerprint = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
        logger.debug(
            "Invalid MCP auth token provided (token_len=%d, token_fp=%s)",
            len(token),
            token_fingerprint,
        )
        return None


def get_mcp_auth_key() -> str | None:
    """Get the MCP static auth key from ``MUSTY_AUTH_KEY``."""
    token = os.getenv("MUSTY_AUTH_KEY")
    if token is None:
        return None
    stripped = token.strip()
    return stripped if stripped else None


def get_mcp_auth_scopes() -> list[str]:
    """Get MCP auth scopes from the comma-separated ``MUSTY_AUTH_SCOPES``."""
    raw = os.getenv("MUSTY_AUTH_SCOPES", "")
    parsed = [scope.strip() for scope in raw.split(",") if scope.strip()]
    return parsed if parsed else ["musty:all"]


def create_mcp_auth() -> APIKeyVerifier | None:
    """Create an auth verifier when ``MUSTY_AUTH_KEY`` is configured."""
    api_key = get_mcp_auth_key()
    if api_key:
        return APIKeyVerifier(api_key, scopes=get_mcp_auth_scopes())
    return None
