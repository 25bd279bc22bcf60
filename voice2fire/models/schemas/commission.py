from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DistributeAdCommissionsRequestModel(BaseModel):
    source_event_id: Optional[str] = Field(None, alias="sourceEventId")

    model_config = ConfigDict(populate_by_name=True)


class DistributeOrderCommissionsRequestModel(BaseModel):
    order_id: Optional[str] = Field(None, alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class CommissionPayoutModel(BaseModel):
    level: int
    affiliate_id: str
    amount: int
    rate: float


class DistributeCommissionsResponseModel(BaseModel):
    # Only "message" is set when there is nobody to pay
    success: Optional[bool] = None
    commissions: Optional[List[CommissionPayoutModel]] = None
    total_paid: Optional[int] = None
    replayed: Optional[bool] = None
    message: Optional[str] = None
