from sqlalchemy.orm import Session

from voice2fire.models.schemas.wallet import WalletSummaryModel
from voice2fire.repositories.commission_repo import CommissionRepository
from voice2fire.repositories.wallet_repo import WalletRepository


class WalletService:
    def __init__(self, db: Session):
        self.wallet_repo = WalletRepository(db)
        self.commission_repo = CommissionRepository(db)

    def get_wallet_summary(self, user_id: str) -> WalletSummaryModel:
        """Balance plus paid commission earnings, grouped by level."""
        wallet = self.wallet_repo.get_wallet(user_id)
        by_level = self.commission_repo.get_paid_totals_by_level(user_id)

        return WalletSummaryModel(
            user_id=user_id,
            balance=wallet.balance if wallet else 0,
            total_commissions=sum(by_level.values()),
            commissions_by_level=by_level,
        )
