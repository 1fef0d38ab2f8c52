"""Credential verification against the identity service.

The identity service issues the bearer tokens admins present. Two ways of
checking them are supported:

- ``RemoteIdentityVerifier`` asks the service who the token belongs to
  (``GET /auth/v1/user``), with a bounded timeout.
- ``JwtIdentityVerifier`` checks the service's JWT signature locally with the
  shared signing secret, so no network call is made.

Both return a :class:`Principal` or ``None``. A rejected token, a timeout and
an outage all look the same to the caller: ``None``.
"""
from typing import Any, NamedTuple, Optional

import requests
from jose import JWTError, jwt

from lostfound_admin.config import Settings
from lostfound_admin.utils.logger import logger


class Principal(NamedTuple):
    """Subject issued by the identity service (read-only here)"""
    id: str
    email: Optional[str]


class IdentityVerifier:
    """Interface: ``verify(token) -> Principal | None``"""

    def verify(self, token: str) -> Optional[Principal]:
        raise NotImplementedError


class RemoteIdentityVerifier(IdentityVerifier):
    """Validate tokens by asking the identity service for the token's user"""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.user_url = f"{base_url.rstrip('/')}/auth/v1/user"
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, token: str) -> Optional[Principal]:
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            resp = self.session.get(self.user_url, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            logger.warning("Identity service timed out", extra={"action": "verify_token"})
            return None
        except requests.RequestException as exc:
            logger.error(f"Identity service unreachable: {exc}", extra={"action": "verify_token"})
            return None

        if resp.status_code != 200:
            logger.info(
                f"Token rejected by identity service (status {resp.status_code})",
                extra={"action": "verify_token"},
            )
            return None

        try:
            body = resp.json()
        except ValueError:
            logger.error("Identity service returned a non-JSON body", extra={"action": "verify_token"})
            return None

        return _principal_from_claims(body, id_field="id")


class JwtIdentityVerifier(IdentityVerifier):
    """Validate identity-service JWTs locally using the shared signing secret"""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: str) -> Optional[Principal]:
        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except JWTError as exc:
            logger.debug(f"JWT decode failed: {exc}")
            return None

        return _principal_from_claims(payload, id_field="sub")


def _principal_from_claims(claims: Any, id_field: str) -> Optional[Principal]:
    if not isinstance(claims, dict):
        return None
    subject = claims.get(id_field)
    if not subject:
        return None
    return Principal(id=str(subject), email=claims.get("email"))


def build_identity_verifier(config: Settings) -> IdentityVerifier:
    """Construct the verifier selected by ``IDENTITY_PROVIDER``"""
    provider = config.IDENTITY_PROVIDER.lower()

    if provider == "jwt":
        if not config.IDENTITY_JWT_SECRET:
            raise RuntimeError("IDENTITY_JWT_SECRET must be set when IDENTITY_PROVIDER=jwt")
        return JwtIdentityVerifier(
            secret=config.IDENTITY_JWT_SECRET,
            algorithm=config.IDENTITY_JWT_ALGORITHM,
            audience=config.IDENTITY_JWT_AUDIENCE,
        )

    if provider == "remote":
        return RemoteIdentityVerifier(
            base_url=config.IDENTITY_URL,
            api_key=config.IDENTITY_API_KEY,
            timeout=config.IDENTITY_TIMEOUT_SECONDS,
        )

    raise RuntimeError(f"Unknown IDENTITY_PROVIDER: {config.IDENTITY_PROVIDER!r}")

