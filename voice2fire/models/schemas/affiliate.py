from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AffiliateLinkCreateModel(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    sponsor_id: str = Field(..., alias="sponsorId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class AffiliateLinkResponseModel(BaseModel):
    user_id: str
    sponsor_id: Optional[str] = None
    level: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AffiliateChainEntryModel(BaseModel):
    affiliate_id: str
    level: int


class AffiliateChainResponseModel(BaseModel):
    user_id: str
    chain: List[AffiliateChainEntryModel]
