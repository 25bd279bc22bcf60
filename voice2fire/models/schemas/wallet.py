from typing import Dict

from pydantic import BaseModel, Field


class WalletSummaryModel(BaseModel):
    user_id: str
    balance: int
    total_commissions: int = Field(..., description="Coins earned from paid commissions.")
    commissions_by_level: Dict[int, int] = Field(default_factory=dict)
