from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

TRACKABLE_EVENT_TYPES = ("viewed", "clicked", "converted")


class TrackEventRequestModel(BaseModel):
    test_id: Optional[str] = Field(None, alias="testId")
    user_id: Optional[str] = Field(None, alias="userId")
    # Checked against TRACKABLE_EVENT_TYPES by the service
    event_type: Optional[str] = Field(None, alias="eventType")

    model_config = ConfigDict(populate_by_name=True)


class TrackEventResponseModel(BaseModel):
    success: bool = True
    message: str
