"""Admin authentication schemas"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AdminSummary(BaseModel):
    id: str
    email: str
    role: str
    is_active: bool

    class Config:
        from_attributes = True


class AdminVerifyResponse(BaseModel):
    success: bool
    admin: AdminSummary
    requiresTwoFA: bool


class AdminProfileResponse(BaseModel):
    """Sanitized profile; never includes the TOTP secret"""
    id: str
    email: str
    role: str
    isActive: bool
    twoFAEnabled: bool
    createdAt: Optional[datetime] = None


class MessageResponse(BaseModel):
    success: bool
    message: str
