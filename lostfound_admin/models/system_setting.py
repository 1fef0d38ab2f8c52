"""SystemSetting model - platform-wide key/value configuration"""
from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from lostfound_admin.database import Base
from lostfound_admin.utils.clock import utcnow


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(JSON, nullable=True)
    setting_type = Column(String(20), default="string", nullable=False)  # string | number | boolean | json
    description = Column(Text, nullable=True)
    is_sensitive = Column(Boolean, default=False, nullable=False)
    updated_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
