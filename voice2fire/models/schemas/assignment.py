from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignVariantRequestModel(BaseModel):
    # Presence is checked by the service so a missing field is a 400, not a 422
    test_id: Optional[str] = Field(None, alias="testId")
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class AssignedVariantContentModel(BaseModel):
    variant_name: str
    message_title: str
    message_body: str
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentModel(BaseModel):
    """A persistent user assignment with the variant content inlined."""

    id: str
    test_id: str
    user_id: str
    variant_id: str
    assigned_at: datetime
    notification_test_variants: AssignedVariantContentModel


class AssignVariantResponseModel(BaseModel):
    success: bool = True
    assignment: Optional[AssignmentModel] = None
    is_new_assignment: bool = Field(False, alias="isNewAssignment")
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
