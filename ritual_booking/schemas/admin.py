from datetime import datetime

from pydantic import BaseModel, Field


class AdminSettingResponse(BaseModel):
    setting_key: str
    setting_value: str
    description: str | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class AdminSettingUpdateRequest(BaseModel):
    setting_value: str = Field(min_length=1, max_length=255)
