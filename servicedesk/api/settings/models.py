# servicedesk/api/settings/models.py
from pydantic import BaseModel, Field


class SettingValue(BaseModel):
    value: str = Field(max_length=500)


class SettingRead(BaseModel):
    key: str
    value: str
