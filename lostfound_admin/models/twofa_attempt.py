"""TwoFAAttempt model - failed second-factor attempts per admin"""
from sqlalchemy import Column, DateTime, Integer, String

from lostfound_admin.database import Base


class TwoFAAttempt(Base):
    """One row per admin, created lazily on the first login-time 2FA attempt.

    ``attempt_count`` accumulates inside a sliding lockout window anchored at
    ``last_attempt_at``; ``locked_until`` is set once the ceiling is reached.
    """

    __tablename__ = "twofa_attempts"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(String(36), unique=True, nullable=False, index=True)
    attempt_count = Column(Integer, default=0, nullable=False)
    last_attempt_at = Column(DateTime, nullable=True)
    locked_until = Column(DateTime, nullable=True)
