# services/commission_service.py
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from voice2fire.core.errors import NotFoundError, ValidationError
from voice2fire.core.settings import config_settings
from voice2fire.models.orm.commission import (
    CommissionORM,
    CommissionSourceType,
    CommissionStatus,
)
from voice2fire.models.schemas.commission import (
    CommissionPayoutModel,
    DistributeCommissionsResponseModel,
)
from voice2fire.repositories.affiliate_repo import AffiliateChainLink, AffiliateRepository
from voice2fire.repositories.commission_repo import CommissionRepository
from voice2fire.repositories.revenue_repo import RevenueRepository
from voice2fire.repositories.wallet_repo import WalletRepository
from voice2fire.services.commission_rates import (
    AD_COMMISSION_RATES,
    ORDER_COMMISSION_RATES,
)

logger = logging.getLogger(__name__)

NO_AFFILIATES_MESSAGE = "No affiliates to pay commissions to"


@dataclass(frozen=True)
class RevenueEvent:
    """The spend a distribution pays out on."""

    source_type: CommissionSourceType
    source_id: str
    beneficiary_id: str
    amount: Decimal


def compute_commission(amount: Decimal, rate: Decimal) -> int:
    """Whole coins owed at one level; fractions are always rounded down."""
    return math.floor(amount * rate)


class CommissionService:
    def __init__(self, db: Session, max_depth: Optional[int] = None):
        self.affiliate_repo = AffiliateRepository(db)
        self.commission_repo = CommissionRepository(db)
        self.revenue_repo = RevenueRepository(db)
        self.wallet_repo = WalletRepository(db)
        self.max_depth = max_depth or config_settings.AFFILIATE_MAX_DEPTH
        self.db = db

    def distribute_ad_commissions(
        self, ad_id: Optional[str]
    ) -> DistributeCommissionsResponseModel:
        """Pays the advertiser's sponsors on the ad's spend."""
        if not ad_id:
            raise ValidationError("Missing sourceEventId parameter")

        ad = self.revenue_repo.get_advertisement(ad_id)
        if not ad:
            raise NotFoundError("Advertisement not found")

        event = RevenueEvent(
            source_type=CommissionSourceType.AD,
            source_id=ad.id,
            beneficiary_id=ad.advertiser_id,
            amount=Decimal(str(ad.amount_spent)),
        )
        return self._distribute(event, AD_COMMISSION_RATES)

    def distribute_order_commissions(
        self, order_id: Optional[str]
    ) -> DistributeCommissionsResponseModel:
        """Pays the customer's sponsors on the order total."""
        if not order_id:
            raise ValidationError("Order ID is required")

        order = self.revenue_repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        event = RevenueEvent(
            source_type=CommissionSourceType.ORDER,
            source_id=order.id,
            beneficiary_id=order.customer_id,
            amount=Decimal(str(order.total_amount)),
        )
        return self._distribute(event, ORDER_COMMISSION_RATES)

    def _distribute(
        self, event: RevenueEvent, rates: Mapping[int, Decimal]
    ) -> DistributeCommissionsResponseModel:
        """
        Pays every rated level of the beneficiary's affiliate chain.

        Each affiliate is paid in its own transaction (commission row, wallet
        increment, paid status). A level already paid for this source is not
        paid again, even if a different sponsor now sits at that level. Once
        all levels are done a completion marker makes any later call a
        read-only replay. A failure stops the loop; affiliates paid before it
        stay paid.
        """
        if self.commission_repo.get_distribution(event.source_type, event.source_id):
            logger.info(
                "Commissions for %s %s were already distributed, replaying",
                event.source_type.value,
                event.source_id,
            )
            return self._to_response(self._paid_commissions(event), replayed=True)

        chain = self.affiliate_repo.get_affiliate_chain(
            event.beneficiary_id, self.max_depth
        )
        if not chain:
            logger.info("No affiliate chain found for %s", event.beneficiary_id)
            return DistributeCommissionsResponseModel(message=NO_AFFILIATES_MESSAGE)

        logger.info(
            "Distributing %s commissions for %s %s over %d levels",
            event.source_type.value,
            event.source_id,
            event.amount,
            len(chain),
        )

        recorded = {
            c.level: c
            for c in self.commission_repo.get_commissions_for_source(
                event.source_type, event.source_id
            )
        }

        for link in chain:
            rate = rates.get(link.level)
            if not rate:
                continue

            amount = compute_commission(event.amount, rate)
            if amount <= 0:
                continue

            existing = recorded.get(link.level)
            if existing is not None and existing.status == CommissionStatus.PAID:
                logger.info(
                    "Level %d for %s was already paid to %s, skipping",
                    link.level,
                    event.source_id,
                    existing.affiliate_id,
                )
                continue

            self._pay_affiliate(event, link, rate, amount, existing)

        paid = self._paid_commissions(event)
        self.commission_repo.record_distribution(
            event.source_type,
            event.source_id,
            total_paid=sum(c.amount for c in paid),
            commission_count=len(paid),
        )
        return self._to_response(paid)

    def _paid_commissions(self, event: RevenueEvent) -> list[CommissionORM]:
        return [
            c
            for c in self.commission_repo.get_commissions_for_source(
                event.source_type, event.source_id
            )
            if c.status == CommissionStatus.PAID
        ]

    def _pay_affiliate(
        self,
        event: RevenueEvent,
        link: AffiliateChainLink,
        rate: Decimal,
        amount: int,
        pending: Optional[CommissionORM],
    ) -> None:
        """
        Records, credits and settles one level's commission atomically.

        If a concurrent distribution of the same source already paid this
        level, the commission insert violates the per-level unique constraint;
        the transaction is rolled back and nothing is credited.
        """
        try:
            db_commission = pending
            if db_commission is None:
                db_commission = self.commission_repo.add_pending_commission(
                    source_type=event.source_type,
                    source_id=event.source_id,
                    beneficiary_id=event.beneficiary_id,
                    affiliate_id=link.affiliate_id,
                    level=link.level,
                    amount=amount,
                    rate=float(rate),
                )
            self.wallet_repo.increment_balance(
                db_commission.affiliate_id, db_commission.amount
            )
            self.commission_repo.mark_paid(db_commission)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            winner = self.commission_repo.get_commission_for_level(
                event.source_type, event.source_id, link.level
            )
            if winner is None:
                logger.exception(
                    "Failed recording level %d commission for %s %s",
                    link.level,
                    event.source_type.value,
                    event.source_id,
                )
                raise
            logger.warning(
                "Level %d for %s %s was paid to %s by a concurrent distribution",
                link.level,
                event.source_type.value,
                event.source_id,
                winner.affiliate_id,
            )
            return
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Failed paying level %d affiliate %s for %s %s",
                link.level,
                link.affiliate_id,
                event.source_type.value,
                event.source_id,
            )
            raise

        logger.info(
            "Paid level %d affiliate %s %d coins at rate %s",
            link.level,
            db_commission.affiliate_id,
            db_commission.amount,
            rate,
        )

    def _to_response(
        self, commissions: list[CommissionORM], replayed: bool = False
    ) -> DistributeCommissionsResponseModel:
        payouts = [
            CommissionPayoutModel(
                level=c.level,
                affiliate_id=c.affiliate_id,
                amount=c.amount,
                rate=c.commission_rate,
            )
            for c in commissions
        ]
        # "replayed" only appears in the response body of a replay
        return DistributeCommissionsResponseModel(
            success=True,
            commissions=payouts,
            total_paid=sum(p.amount for p in payouts),
            replayed=True if replayed else None,
        )
