"""Two-factor authentication schemas"""
from typing import Optional

from pydantic import BaseModel, Field


class TwoFASetupResponse(BaseModel):
    """Returned once by setup; nothing is stored until the code is verified"""
    secret: str
    enrollmentUri: str
    message: str


class TwoFAEnableRequest(BaseModel):
    secret: str = Field(..., min_length=16, description="Secret returned by /admin/2fa/setup")
    token: str = Field(..., description="Current 6-digit code from the authenticator app")


class TwoFALoginRequest(BaseModel):
    token: Optional[str] = Field(None, description="Current 6-digit code from the authenticator app")


class TwoFALoginResponse(BaseModel):
    success: bool
    required: bool = True
    message: Optional[str] = None


class TwoFACheckResponse(BaseModel):
    requiresTwoFA: bool
    role: str
    sessionVerified: bool
