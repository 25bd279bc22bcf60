"""Tests for sponsor links and affiliate chain resolution."""
import pytest

from voice2fire.core.errors import ValidationError
from voice2fire.models.orm.affiliate import AffiliateLinkORM
from voice2fire.models.schemas.affiliate import AffiliateLinkCreateModel
from voice2fire.repositories.affiliate_repo import AffiliateRepository
from voice2fire.services.affiliate_service import AffiliateService


def _link(user_id, sponsor_id):
    return AffiliateLinkCreateModel(userId=user_id, sponsorId=sponsor_id)


def test_chain_lists_sponsors_by_level(db, make_chain):
    make_chain("u", "s1", "s2")

    chain = AffiliateService(db).get_chain("u").chain

    assert [(c.affiliate_id, c.level) for c in chain] == [("s1", 1), ("s2", 2)]


def test_chain_respects_max_depth(db, make_chain):
    make_chain("u", "a", "b", "c")

    chain = AffiliateRepository(db).get_affiliate_chain("u", max_depth=2)

    assert [c.affiliate_id for c in chain] == ["a", "b"]


def test_user_without_sponsor_has_empty_chain(db):
    assert AffiliateService(db).get_chain("nobody").chain == []


def test_self_referral_rejected(db):
    with pytest.raises(ValidationError, match="own sponsor"):
        AffiliateService(db).set_sponsor(_link("u", "u"))


def test_cycle_rejected(db, make_chain):
    make_chain("c", "b", "a")

    with pytest.raises(ValidationError, match="cycle"):
        AffiliateService(db).set_sponsor(_link("a", "c"))

    assert AffiliateRepository(db).get_sponsor_id("a") is None


def test_set_sponsor_replaces_existing(db, make_chain):
    make_chain("u", "old")

    link = AffiliateService(db).set_sponsor(_link("u", "new"))

    assert link.sponsor_id == "new"
    assert link.level == 1
    assert db.query(AffiliateLinkORM).filter_by(user_id="u").count() == 1


def test_chain_stops_at_stored_cycle(db):
    # rows written outside set_sponsor
    db.add_all(
        [
            AffiliateLinkORM(user_id="x", sponsor_id="y"),
            AffiliateLinkORM(user_id="y", sponsor_id="x"),
        ]
    )
    db.commit()

    chain = AffiliateRepository(db).get_affiliate_chain("x", max_depth=5)

    assert [c.affiliate_id for c in chain] == ["y"]
