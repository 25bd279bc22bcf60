import logging
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from voice2fire.models.orm.affiliate import AffiliateLinkORM

logger = logging.getLogger(__name__)


class AffiliateChainLink(NamedTuple):
    affiliate_id: str
    level: int


class AffiliateRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_link(self, user_id: str) -> Optional[AffiliateLinkORM]:
        stmt = select(AffiliateLinkORM).where(AffiliateLinkORM.user_id == user_id)
        return self.db.scalars(stmt).one_or_none()

    def get_sponsor_id(self, user_id: str) -> Optional[str]:
        link = self.get_link(user_id)
        return link.sponsor_id if link else None

    def set_sponsor(self, user_id: str, sponsor_id: str) -> AffiliateLinkORM:
        """Creates or replaces the user's direct sponsor edge."""
        db_link = self.get_link(user_id)
        if db_link is None:
            db_link = AffiliateLinkORM(user_id=user_id)
            self.db.add(db_link)

        db_link.sponsor_id = sponsor_id
        db_link.level = 1

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(db_link)
        return db_link

    def get_affiliate_chain(
        self, user_id: str, max_depth: int
    ) -> list[AffiliateChainLink]:
        """
        Walks sponsor edges upward from user_id.

        Level 1 is the direct sponsor. Stops at the first user without a
        sponsor, after max_depth levels, or when a sponsor repeats.
        """
        chain: list[AffiliateChainLink] = []
        seen = {user_id}
        current = user_id

        for level in range(1, max_depth + 1):
            sponsor_id = self.get_sponsor_id(current)
            if not sponsor_id:
                break
            if sponsor_id in seen:
                logger.error(
                    "Referral cycle detected at %s while resolving chain for %s",
                    sponsor_id,
                    user_id,
                )
                break

            chain.append(AffiliateChainLink(affiliate_id=sponsor_id, level=level))
            seen.add(sponsor_id)
            current = sponsor_id

        return chain
