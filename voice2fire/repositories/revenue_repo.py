from typing import Optional

from sqlalchemy.orm import Session

from voice2fire.models.orm.revenue import AdvertisementORM, OrderORM


class RevenueRepository:
    """Read access to the ad spend and store order records commissions are paid on."""

    def __init__(self, db: Session):
        self.db = db

    def get_advertisement(self, ad_id: str) -> Optional[AdvertisementORM]:
        return self.db.get(AdvertisementORM, ad_id)

    def get_order(self, order_id: str) -> Optional[OrderORM]:
        return self.db.get(OrderORM, order_id)
