from decimal import Decimal

import pytest

from ledger import (
    Caller, InvalidState, NotFound, approve_investment, create_investment, link_referral,
    reject_investment,
)
from models import Notification, Referral, Transaction, TransactionType, User
from extensions import db
from conftest import T0


@pytest.fixture
def edge(make_account):
    referrer = make_account()
    referred = make_account()
    link_referral(referred, referrer.referral_code)
    db.session.commit()
    return referrer, referred


def test_link_referral_creates_edge(edge):
    referrer, referred = edge
    referral = Referral.query.filter_by(referred_id=referred.id).one()
    assert referral.referrer_id == referrer.id
    assert referral.first_investment_completed is False
    assert db.session.get(User, referred.id).referred_by == referrer.id


def test_link_referral_rejects_bad_codes(edge, make_account):
    referrer, referred = edge
    with pytest.raises(NotFound):
        link_referral(make_account(), "NOPE1234")
    with pytest.raises(InvalidState):
        link_referral(referrer, referrer.referral_code)
    with pytest.raises(InvalidState):
        link_referral(referred, make_account().referral_code)


def test_bonus_paid_once_across_many_activations(edge, admin_caller):
    referrer, referred = edge
    owner = Caller.from_user(referred)

    first = create_investment(owner, 2500, now=T0)
    second = create_investment(owner, 5000, now=T0)
    approve_investment(admin_caller, first.id, now=T0)
    approve_investment(admin_caller, second.id, now=T0)

    referrer = db.session.get(User, referrer.id)
    assert referrer.balance == Decimal("250.00")
    assert referrer.referral_bonus == Decimal("250.00")
    assert Transaction.query.filter_by(
        user_id=referrer.id, type=TransactionType.REFERRAL_BONUS.value
    ).count() == 1

    referral = Referral.query.filter_by(referred_id=referred.id).one()
    assert referral.first_investment_completed is True
    assert referral.bonus_amount == Decimal("250.00")
    assert Notification.query.filter_by(user_id=referrer.id, title="Referral bonus earned").count() == 1


def test_rejected_investment_does_not_trigger_bonus(edge, admin_caller):
    referrer, referred = edge
    investment = create_investment(Caller.from_user(referred), 2500, now=T0)

    reject_investment(admin_caller, investment.id)

    assert db.session.get(User, referrer.id).balance == Decimal("0.00")
    assert Referral.query.filter_by(referred_id=referred.id).one().first_investment_completed is False


def test_unreferred_account_pays_no_bonus(caller, admin_caller):
    investment = create_investment(caller, 2500, now=T0)
    approve_investment(admin_caller, investment.id, now=T0)
    assert Transaction.query.filter_by(type=TransactionType.REFERRAL_BONUS.value).count() == 0
