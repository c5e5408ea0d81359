# =============================================================================
# Auth Service — API Key Generation
# =============================================================================
#
# Pure functions used by the credential store, the ingestion endpoint and
# tests. No FastAPI or database dependency.
#
# Keys are 32 random bytes from `secrets`, hex encoded (64 chars). They are
# matched by exact equality on an indexed column, so there is no prefix or
# hash step.
# =============================================================================

from __future__ import annotations

import secrets

API_KEY_BYTES = 32
PREVIEW_LENGTH = 8


def generate_api_key() -> str:
    """Generate a new secret token: 64 lowercase hex characters."""
    return secrets.token_hex(API_KEY_BYTES)


def key_preview(token: str | None) -> str:
    """First characters of a token for log lines. Never log a full token."""
    if not token:
        return "<empty>"
    return f"{token[:PREVIEW_LENGTH]}..."

