# =============================================================================
# Identity Provider — Tenant Sign-In Capability
# =============================================================================
#
# Sign-up, sign-in, passwords and sessions belong to an external identity
# provider. This service only needs one capability from it:
#
#   authenticate_tenant(credentials) → tenant_id   (or TenantAuthError)
#
# JwtIdentityProvider verifies the access tokens such providers issue
# (HS256 by default, shared secret) and returns the `sub` claim. Any object
# with the same method can be injected through api.deps.get_identity_provider.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

import jwt

from feedback_api.config import Settings
from feedback_api.exceptions import TenantAuthError

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Interface for the external identity provider."""

    def authenticate_tenant(self, credentials: str) -> str:
        """
        Return the tenant ID the credentials belong to.

        Raises:
            TenantAuthError: The credentials are missing, invalid or expired.
        """
        ...


class JwtIdentityProvider:
    """Verifies provider-issued JWTs with PyJWT."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: str | None = None,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtIdentityProvider:
        return cls(
            secret=settings.identity_jwt_secret,
            algorithm=settings.identity_jwt_algorithm,
            audience=settings.identity_jwt_audience,
        )

    def authenticate_tenant(self, credentials: str) -> str:
        if not self._secret:
            # Misconfiguration, not a client error: refuse every token
            logger.error("Identity provider secret is not configured")
            raise TenantAuthError("Identity provider is not configured")

        if not credentials:
            raise TenantAuthError("Missing credentials")

        try:
            claims = jwt.decode(
                credentials,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={
                    "require": ["sub", "exp"],
                    "verify_aud": self._audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise TenantAuthError("Session expired") from e
        except jwt.InvalidTokenError as e:
            logger.info("Rejected identity token: %s", e)
            raise TenantAuthError("Invalid session token") from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TenantAuthError("Invalid session token")
        return subject
