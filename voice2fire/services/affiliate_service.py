import logging

from sqlalchemy.orm import Session

from voice2fire.core.errors import ValidationError
from voice2fire.core.settings import config_settings
from voice2fire.models.schemas.affiliate import (
    AffiliateChainEntryModel,
    AffiliateChainResponseModel,
    AffiliateLinkCreateModel,
    AffiliateLinkResponseModel,
)
from voice2fire.repositories.affiliate_repo import AffiliateRepository

logger = logging.getLogger(__name__)


class AffiliateService:
    def __init__(self, db: Session):
        self.affiliate_repo = AffiliateRepository(db)

    def set_sponsor(self, link_data: AffiliateLinkCreateModel) -> AffiliateLinkResponseModel:
        """
        Points a user at a new direct sponsor.

        Rejects self-referral and any sponsor already below the user in the
        referral tree, which would close a cycle.
        """
        user_id, sponsor_id = link_data.user_id, link_data.sponsor_id
        if user_id == sponsor_id:
            raise ValidationError("User cannot be their own sponsor")

        if self._is_ancestor(user_id, of_user=sponsor_id):
            raise ValidationError(
                f"Sponsor {sponsor_id} is referred by {user_id}; the link would create a cycle"
            )

        db_link = self.affiliate_repo.set_sponsor(user_id, sponsor_id)
        logger.info("User %s is now sponsored by %s", user_id, sponsor_id)
        return AffiliateLinkResponseModel.model_validate(db_link)

    def get_chain(self, user_id: str) -> AffiliateChainResponseModel:
        chain = self.affiliate_repo.get_affiliate_chain(
            user_id, config_settings.AFFILIATE_MAX_DEPTH
        )
        return AffiliateChainResponseModel(
            user_id=user_id,
            chain=[
                AffiliateChainEntryModel(affiliate_id=link.affiliate_id, level=link.level)
                for link in chain
            ],
        )

    def _is_ancestor(self, candidate: str, of_user: str) -> bool:
        """True when candidate appears anywhere above of_user (uncapped walk)."""
        seen = set()
        current = of_user
        while current and current not in seen:
            if current == candidate:
                return True
            seen.add(current)
            current = self.affiliate_repo.get_sponsor_id(current)
        return False
