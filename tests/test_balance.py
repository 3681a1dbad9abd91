from decimal import Decimal

import pytest

from ledger import InsufficientFunds, InvalidAmount, NotFound
from ledger.balance import EARNINGS, REFERRAL_BONUS, BalanceAccounting
from models import Transaction, TransactionStatus, TransactionType, User
from extensions import db
from conftest import balance_of


def test_credit_increases_balance_and_records_transaction(account):
    tx = BalanceAccounting.credit(account.id, "150.50", "Manual credit")

    assert balance_of(account.id) == Decimal("150.50")
    assert tx.status == TransactionStatus.COMPLETED.value
    assert tx.type == TransactionType.PAYOUT.value
    assert tx.reference.startswith("PAY-")


def test_credit_feeds_the_requested_counter(account):
    BalanceAccounting.credit(account.id, "100", "payout", counter=EARNINGS)
    BalanceAccounting.credit(account.id, "40", "referral", tx_type=TransactionType.REFERRAL_BONUS.value,
                             counter=REFERRAL_BONUS)

    user = db.session.get(User, account.id)
    assert user.balance == Decimal("140.00")
    assert user.earnings == Decimal("100.00")
    assert user.referral_bonus == Decimal("40.00")


@pytest.mark.parametrize("amount", ["0", "-5", "abc", None])
def test_non_positive_or_garbage_amounts_are_rejected(account, amount):
    with pytest.raises(InvalidAmount):
        BalanceAccounting.credit(account.id, amount, "bad")
    with pytest.raises(InvalidAmount):
        BalanceAccounting.debit(account.id, amount, "bad")
    assert Transaction.query.count() == 0


def test_debit_reduces_balance(make_account):
    user = make_account(balance="1000")

    BalanceAccounting.debit(user.id, "400", "Withdrawal")

    assert balance_of(user.id) == Decimal("600.00")
    assert Transaction.query.filter_by(user_id=user.id).count() == 1


def test_debit_more_than_balance_changes_nothing(make_account):
    user = make_account(balance="100")

    with pytest.raises(InsufficientFunds) as exc:
        BalanceAccounting.debit(user.id, "100.01", "Too much")

    assert exc.value.details["balance"] == 100.0
    assert balance_of(user.id) == Decimal("100.00")
    assert Transaction.query.count() == 0


def test_debit_can_empty_the_account(make_account):
    user = make_account(balance="250")
    BalanceAccounting.debit(user.id, "250", "All of it")
    assert balance_of(user.id) == Decimal("0.00")


def test_debit_without_record_skips_the_transaction(make_account):
    user = make_account(balance="500")
    assert BalanceAccounting.debit(user.id, "100", "owned elsewhere", record=False) is None
    assert Transaction.query.count() == 0


def test_unknown_account(app):
    with pytest.raises(NotFound):
        BalanceAccounting.get_balance(999)
    with pytest.raises(NotFound):
        BalanceAccounting.credit(999, "10", "nobody")
