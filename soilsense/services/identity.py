"""Verification of identity tokens issued by an external provider."""

import logging
from dataclasses import dataclass

import httpx

from soilsense.config import get_settings
from soilsense.errors import ServiceUnavailableError, UnauthorizedError

logger = logging.getLogger("soilsense")


@dataclass
class IdentityClaims:
    """Verified identity asserted by the provider."""

    subject: str
    email: str
    name: str
    picture: str | None = None


class IdentityVerifier:
    """Checks ID tokens against the provider's token-info endpoint."""

    def __init__(self, tokeninfo_url: str, audience: str, timeout: float) -> None:
        self.tokeninfo_url = tokeninfo_url
        self.audience = audience
        self.timeout = timeout

    def verify(self, id_token: str) -> IdentityClaims:
        """Return the claims behind ``id_token``.

        Raises UnauthorizedError if the provider rejects the token or the
        email behind it is unverified, and
        ServiceUnavailableError if the provider cannot be reached in time.
        """
        try:
            response = httpx.get(self.tokeninfo_url, params={"id_token": id_token}, timeout=self.timeout)
        except httpx.TimeoutException:
            logger.warning("Identity provider timed out")
            raise ServiceUnavailableError("Identity provider unavailable") from None
        except httpx.RequestError as e:
            logger.warning("Identity provider unreachable: %s", e)
            raise ServiceUnavailableError("Identity provider unavailable") from None

        if response.status_code != 200:
            raise UnauthorizedError("Invalid identity token", reason="IDENTITY_REJECTED")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Identity provider returned a non-JSON body")
            raise UnauthorizedError("Invalid identity token", reason="IDENTITY_REJECTED") from None
        if not isinstance(data, dict):
            raise UnauthorizedError("Invalid identity token", reason="IDENTITY_REJECTED")

        if self.audience and data.get("aud") != self.audience:
            raise UnauthorizedError("Invalid identity token", reason="IDENTITY_REJECTED")

        subject = data.get("sub")
        email = data.get("email")
        if not subject or not email:
            raise UnauthorizedError("Identity token has no email", reason="IDENTITY_REJECTED")

        # Token-info reports email_verified as a string
        if data.get("email_verified") not in (True, "true"):
            raise UnauthorizedError("Identity email is not verified", reason="IDENTITY_REJECTED")

        return IdentityClaims(
            subject=subject,
            email=email.lower(),
            name=data.get("name") or email.split("@")[0],
            picture=data.get("picture"),
        )


_identity_verifier: IdentityVerifier | None = None


def get_identity_verifier() -> IdentityVerifier:
    """Get singleton identity verifier instance."""
    global _identity_verifier
    if _identity_verifier is None:
        settings = get_settings()
        _identity_verifier = IdentityVerifier(
            settings.IDENTITY_TOKENINFO_URL,
            settings.IDENTITY_AUDIENCE,
            settings.PROVIDER_TIMEOUT_SECONDS,
        )
    return _identity_verifier
