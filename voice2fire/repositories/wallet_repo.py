import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voice2fire.models.orm.wallet import WalletORM

logger = logging.getLogger(__name__)


class WalletRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_wallet(self, user_id: str) -> Optional[WalletORM]:
        stmt = select(WalletORM).where(WalletORM.user_id == user_id)
        return self.db.scalars(stmt).one_or_none()

    def increment_balance(self, user_id: str, amount: int) -> None:
        """
        Adds amount (negative to debit) to the user's balance.

        Issued as a single UPDATE ... SET balance = balance + :amount so
        concurrent writers never lose each other's changes. Does not commit;
        the caller owns the transaction.
        """
        if self._apply_increment(user_id, amount):
            return

        # No wallet yet: create it inside a savepoint so a concurrent create
        # only undoes this insert
        try:
            with self.db.begin_nested():
                self.db.add(WalletORM(user_id=user_id, balance=amount))
        except IntegrityError:
            logger.info("Wallet for %s created concurrently, retrying increment", user_id)
            self._apply_increment(user_id, amount)

    def _apply_increment(self, user_id: str, amount: int) -> bool:
        stmt = (
            update(WalletORM)
            .where(WalletORM.user_id == user_id)
            .values(balance=WalletORM.balance + amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount > 0
