from decimal import Decimal

import pytest

from ledger import (
    Caller, Forbidden, InsufficientFunds, InvalidAmount, InvalidBankDetails, InvalidState,
    approve_withdrawal, reject_withdrawal, request_withdrawal,
)
from models import Notification, Transaction, TransactionStatus, WithdrawalRequest, WithdrawalStatus
from extensions import db
from conftest import T0, balance_of

BANK = ("First Bank", "0123456789", "Ada Obi")


@pytest.fixture
def funded(make_account):
    user = make_account(balance="1000")
    return user, Caller.from_user(user)


def test_request_creates_pending_request_and_transaction(funded):
    user, owner = funded
    withdrawal = request_withdrawal(owner, "500", *BANK)

    assert withdrawal.status == WithdrawalStatus.PENDING.value
    assert withdrawal.amount == Decimal("500.00")
    assert balance_of(user.id) == Decimal("1000.00")
    tx = Transaction.query.filter_by(withdrawal_id=withdrawal.id).one()
    assert tx.status == TransactionStatus.PENDING.value
    assert tx.reference.startswith("WDR-")


def test_request_above_balance_creates_nothing(funded):
    _, owner = funded
    with pytest.raises(InsufficientFunds):
        request_withdrawal(owner, "1000.01", *BANK)
    assert WithdrawalRequest.query.count() == 0
    assert Transaction.query.count() == 0


@pytest.mark.parametrize("amount", ["99.99", "0", "-100", "ten"])
def test_amount_validation(funded, amount):
    _, owner = funded
    with pytest.raises(InvalidAmount):
        request_withdrawal(owner, amount, *BANK)


@pytest.mark.parametrize("bank_name, account_number, account_name", [
    ("", "0123456789", "Ada Obi"),
    ("First Bank", "012345678", "Ada Obi"),
    ("First Bank", "01234567890", "Ada Obi"),
    ("First Bank", "01234x6789", "Ada Obi"),
    ("First Bank", "0123456789", "A"),
    ("First Bank", "0123456789", "Ada Obi 2"),
    ("First Bank", "0123456789", "A" * 101),
    ("First Bank", 1234567890, "Ada Obi"),
    (["First Bank"], "0123456789", "Ada Obi"),
    ("First Bank", "0123456789", {"name": "Ada Obi"}),
])
def test_bank_details_validation(funded, bank_name, account_number, account_name):
    _, owner = funded
    with pytest.raises(InvalidBankDetails):
        request_withdrawal(owner, "500", bank_name, account_number, account_name)
    assert WithdrawalRequest.query.count() == 0


def test_approve_debits_exactly_once(funded, admin_caller):
    user, owner = funded
    withdrawal = request_withdrawal(owner, "400", *BANK)

    approve_withdrawal(admin_caller, withdrawal.id, now=T0)

    withdrawal = db.session.get(WithdrawalRequest, withdrawal.id)
    assert withdrawal.status == WithdrawalStatus.APPROVED.value
    assert withdrawal.processed_by == admin_caller.account_id
    assert withdrawal.processed_at == T0
    assert balance_of(user.id) == Decimal("600.00")
    assert Transaction.query.filter_by(withdrawal_id=withdrawal.id).one().status == TransactionStatus.COMPLETED.value

    with pytest.raises(InvalidState):
        approve_withdrawal(admin_caller, withdrawal.id)
    with pytest.raises(InvalidState):
        reject_withdrawal(admin_caller, withdrawal.id)
    assert balance_of(user.id) == Decimal("600.00")


def test_reject_leaves_balance_untouched(funded, admin_caller):
    user, owner = funded
    withdrawal = request_withdrawal(owner, "400", *BANK)

    reject_withdrawal(admin_caller, withdrawal.id)

    assert db.session.get(WithdrawalRequest, withdrawal.id).status == WithdrawalStatus.REJECTED.value
    assert balance_of(user.id) == Decimal("1000.00")
    assert Transaction.query.filter_by(withdrawal_id=withdrawal.id).one().status == TransactionStatus.FAILED.value
    assert Notification.query.filter_by(user_id=user.id, title="Withdrawal rejected").count() == 1


def test_approval_fails_when_balance_no_longer_covers_it(funded, admin_caller):
    user, owner = funded
    first = request_withdrawal(owner, "800", *BANK)
    second = request_withdrawal(owner, "800", *BANK)
    approve_withdrawal(admin_caller, first.id)

    with pytest.raises(InsufficientFunds):
        approve_withdrawal(admin_caller, second.id)

    second = db.session.get(WithdrawalRequest, second.id)
    assert second.status == WithdrawalStatus.PENDING.value
    assert second.processed_at is None
    assert balance_of(user.id) == Decimal("200.00")


def test_only_admins_resolve_withdrawals(funded):
    _, owner = funded
    withdrawal = request_withdrawal(owner, "400", *BANK)
    with pytest.raises(Forbidden):
        approve_withdrawal(owner, withdrawal.id)
