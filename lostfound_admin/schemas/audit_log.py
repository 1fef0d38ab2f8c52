"""Audit log and login history schemas"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, model_validator


class AuditLogResponse(BaseModel):
    """Schema for audit log response"""

    log_id: str
    admin_id: str
    admin_email: Optional[str] = None
    action: str
    resource_type: str
    outcome: str
    resource_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @model_validator(mode='before')
    @classmethod
    def map_log_metadata(cls, data):
        """Map log_metadata attribute to metadata field"""
        # Handle SQLAlchemy model objects
        if hasattr(data, '__dict__') and hasattr(data, 'log_metadata'):
            return {
                'log_id': data.log_id,
                'admin_id': data.admin_id,
                'admin_email': data.admin_email,
                'action': data.action,
                'resource_type': data.resource_type,
                'outcome': data.outcome,
                'resource_id': data.resource_id,
                'metadata': data.log_metadata,
                'ip_address': data.ip_address,
                'user_agent': data.user_agent,
                'request_id': data.request_id,
                'created_at': data.created_at,
            }
        return data


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    limit: int
    offset: int


class LoginHistoryResponse(BaseModel):
    id: int
    admin_id: str
    admin_email: str
    login_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool

    class Config:
        from_attributes = True


class LoginHistoryListResponse(BaseModel):
    logins: List[LoginHistoryResponse]
    total: int
    limit: int
    offset: int
