"""System setting schemas"""
from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class SettingResponse(BaseModel):
    """A setting with its value exposed under the field matching its type.

    The other three ``value_*`` fields are null, as is the typed field when
    the stored value does not match the declared type.
    """
    id: int
    setting_key: str
    setting_type: str
    value_string: Optional[str] = None
    value_number: Optional[Union[int, float]] = None
    value_boolean: Optional[bool] = None
    value_json: Optional[Any] = None
    description: Optional[str] = None
    is_sensitive: bool
    updated_at: Optional[datetime] = None

    @classmethod
    def from_setting(cls, setting) -> "SettingResponse":
        value = setting.setting_value
        setting_type = setting.setting_type or "string"
        typed = {}

        if setting_type == "number":
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                typed["value_number"] = value
        elif setting_type == "boolean":
            if isinstance(value, bool):
                typed["value_boolean"] = value
        elif setting_type == "json":
            typed["value_json"] = value
        elif isinstance(value, str):
            typed["value_string"] = value

        return cls(
            id=setting.id,
            setting_key=setting.setting_key,
            setting_type=setting_type,
            description=setting.description,
            is_sensitive=setting.is_sensitive,
            updated_at=setting.updated_at,
            **typed,
        )


class SettingUpdate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any = Field(None, description="Stored as-is in the JSON column")


class SettingsUpdateResponse(BaseModel):
    success: bool
    updated: int
    unknownKeys: List[str] = Field(default_factory=list)
