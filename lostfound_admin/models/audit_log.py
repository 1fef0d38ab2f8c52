"""Admin audit log model"""
import uuid

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text

from lostfound_admin.database import Base
from lostfound_admin.utils.clock import utcnow


def generate_uuid_string():
    """Generate UUID as string for SQLite compatibility"""
    return str(uuid.uuid4())


class AuditLog(Base):
    """AuditLog model - append-only record of privileged admin actions"""

    __tablename__ = "admin_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(String(36), default=generate_uuid_string, unique=True, nullable=False, index=True)
    admin_id = Column(String(36), nullable=False, index=True)
    admin_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False)
    outcome = Column(String(20), nullable=False, index=True)  # success, failure
    resource_id = Column(String(255), nullable=True)
    log_metadata = Column("metadata", JSON, nullable=True)  # Column name is 'metadata', attribute is 'log_metadata'
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    request_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
