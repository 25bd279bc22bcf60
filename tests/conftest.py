import os

# Must be set before voice2fire.core.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOKENS", '["test-token"]')

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from voice2fire.core.db import get_db
from voice2fire.main import app
from voice2fire.models.orm.affiliate import AffiliateLinkORM
from voice2fire.models.orm.base import Base
from voice2fire.models.orm.notification_test import (
    NotificationTestORM,
    NotificationTestStatus,
    NotificationTestVariantORM,
)
from voice2fire.models.orm.revenue import AdvertisementORM, OrderORM

AUTH_HEADERS = {"Authorization": "Bearer test-token"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers=AUTH_HEADERS) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_test(db):
    """Factory for a notification test with (name, weight, title) variants."""

    def _make_test(variants, status=NotificationTestStatus.ACTIVE, name="Test"):
        db_test = NotificationTestORM(name=name, status=status)
        db.add(db_test)
        db.flush()
        for variant_name, weight, title in variants:
            db.add(
                NotificationTestVariantORM(
                    test_id=db_test.id,
                    variant_name=variant_name,
                    message_title=title,
                    message_body=f"{title} body",
                    cta_text="Shop now",
                    cta_link="/store",
                    traffic_allocation=weight,
                )
            )
        db.commit()
        return db_test.id

    return _make_test


@pytest.fixture
def make_chain(db):
    """Links users[0] -> users[1] -> ... as successive direct sponsors."""

    def _make_chain(*users):
        for user_id, sponsor_id in zip(users, users[1:]):
            db.add(AffiliateLinkORM(user_id=user_id, sponsor_id=sponsor_id, level=1))
        db.commit()

    return _make_chain


@pytest.fixture
def make_order(db):
    def _make_order(order_id, customer_id, total_amount):
        db.add(OrderORM(id=order_id, customer_id=customer_id, total_amount=total_amount))
        db.commit()
        return order_id

    return _make_order


@pytest.fixture
def make_ad(db):
    def _make_ad(ad_id, advertiser_id, amount_spent):
        db.add(
            AdvertisementORM(
                id=ad_id, advertiser_id=advertiser_id, title="Promo", amount_spent=amount_spent
            )
        )
        db.commit()
        return ad_id

    return _make_ad
