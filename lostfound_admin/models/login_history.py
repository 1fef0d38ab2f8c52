"""AdminLoginHistory model"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from lostfound_admin.database import Base
from lostfound_admin.utils.clock import utcnow


class AdminLoginHistory(Base):
    """One row per successful admin sign-in to the back office"""

    __tablename__ = "admin_login_history"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(String(36), nullable=False, index=True)
    admin_email = Column(String(255), nullable=False)
    login_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    success = Column(Boolean, default=True, nullable=False)
