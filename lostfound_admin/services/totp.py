"""Time-based one-time passwords (RFC 6238) for the super_admin second factor"""
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Union

import pyotp

from lostfound_admin.utils.logger import logger

SECRET_LENGTH = 32


def _for_time(at: Union[datetime, int]) -> Union[datetime, int]:
    # Naive datetimes are UTC throughout this package; pyotp would read them as local time
    if isinstance(at, datetime) and at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at


class Enrollment(NamedTuple):
    secret: str
    enrollment_uri: str


class TotpEngine:
    """Generate enrollment secrets and check 6-digit codes.

    ``window`` is the number of 30-second steps tolerated on either side of
    the current step, so the default of 2 accepts codes up to a minute of
    clock drift.
    """

    def __init__(self, window: int = 2, issuer: str = "Trust", interval: int = 30, digits: int = 6):
        self.window = window
        self.issuer = issuer
        self.interval = interval
        self.digits = digits

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval)

    def enroll(self, label: str) -> Enrollment:
        """New random secret plus the otpauth:// URI an authenticator app can scan"""
        secret = pyotp.random_base32(length=SECRET_LENGTH)
        uri = self._totp(secret).provisioning_uri(name=label, issuer_name=self.issuer)
        return Enrollment(secret=secret, enrollment_uri=uri)

    def now(self, secret: str, at: Optional[Union[datetime, int]] = None) -> str:
        """Current code for ``secret`` (or the code at ``at``)"""
        totp = self._totp(secret)
        return totp.at(_for_time(at)) if at is not None else totp.now()

    def check(self, secret: str, code: str, at: Optional[Union[datetime, int]] = None) -> bool:
        if not secret or not code:
            return False

        code = "".join(str(code).split())
        if len(code) != self.digits or not code.isdigit():
            return False

        try:
            if at is None:
                return self._totp(secret).verify(code, valid_window=self.window)
            return self._totp(secret).verify(code, for_time=_for_time(at), valid_window=self.window)
        except Exception as exc:
            # Malformed secrets raise from the base32 decoder
            logger.warning(f"TOTP check failed: {exc}")
            return False
