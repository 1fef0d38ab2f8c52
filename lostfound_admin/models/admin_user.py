"""AdminUser model - privileged back-office accounts"""
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text

from lostfound_admin.database import Base
from lostfound_admin.utils.clock import utcnow


def generate_uuid_string():
    """Generate UUID as string for SQLite compatibility"""
    return str(uuid.uuid4())


class AdminUser(Base):
    """An admin profile linked to an identity-service principal.

    ``user_id`` is the principal id issued by the identity service. The row is
    read fresh on every request so that deactivation and forced logout take
    effect immediately. The TOTP secret is stored in the clear.
    """

    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True, default=generate_uuid_string)
    user_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)                   # analyst | moderator | super_admin
    is_active = Column(Boolean, default=True, nullable=False)

    twofa_enabled = Column(Boolean, default=False, nullable=False)
    twofa_secret = Column(Text, nullable=True)
    twofa_verified_at = Column(DateTime, nullable=True)

    force_logout_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def twofa_confirmed(self) -> bool:
        """2FA is switched on and the enrollment code was verified"""
        return bool(self.twofa_enabled and self.twofa_verified_at is not None)
