from decimal import Decimal
import logging
from typing import Optional

from extensions import db
from models import User, Transaction, TransactionType, TransactionStatus
from ledger.errors import InsufficientFunds, InvalidAmount, NotFound
from ledger.store import atomic, new_reference, to_money

logger = logging.getLogger(__name__)

# Which cumulative counter a credit also feeds, besides balance
EARNINGS = "earnings"
REFERRAL_BONUS = "referral_bonus"

_REFERENCE_PREFIX = {
    TransactionType.INVESTMENT.value: "INV",
    TransactionType.PAYOUT.value: "PAY",
    TransactionType.WITHDRAWAL.value: "WDR",
    TransactionType.REFERRAL_BONUS.value: "REF",
}


def record_transaction(user_id: int, tx_type: str, amount: Decimal, status: str,
                       description: str = None, investment_id: int = None,
                       withdrawal_id: int = None) -> Transaction:
    """Append a ledger entry to the current unit of work."""
    transaction = Transaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        status=status,
        description=description,
        reference=new_reference(_REFERENCE_PREFIX.get(tx_type, "TX")),
        investment_id=investment_id,
        withdrawal_id=withdrawal_id,
    )
    db.session.add(transaction)
    db.session.flush()
    return transaction


# ==========================================================
#                  BALANCE ACCOUNTING
# ==========================================================
class BalanceAccounting:
    """
    Atomic credit/debit against an account balance.

    Balances are changed with SQL-side arithmetic (``balance = balance + :x``)
    so two concurrent requests on the same account can never lose an update,
    and a debit is conditional on ``balance >= :x`` inside the same statement.
    """

    @staticmethod
    def _positive(amount) -> Decimal:
        amount_dec = to_money(amount)
        if amount_dec <= 0:
            raise InvalidAmount("Amount must be greater than zero")
        return amount_dec

    @staticmethod
    def get_balance(account_id: int) -> Decimal:
        balance = db.session.query(User.balance).filter(User.id == account_id).scalar()
        if balance is None:
            raise NotFound(f"Account {account_id} not found")
        return Decimal(str(balance))

    @staticmethod
    def credit(account_id: int, amount, reason: str,
               tx_type: str = TransactionType.PAYOUT.value,
               counter: Optional[str] = None,
               investment_id: int = None,
               withdrawal_id: int = None) -> Transaction:
        """Increase balance (and the given cumulative counter) and record a completed transaction."""
        amount_dec = BalanceAccounting._positive(amount)

        with atomic():
            values = {User.balance: User.balance + amount_dec}
            if counter == EARNINGS:
                values[User.earnings] = User.earnings + amount_dec
            elif counter == REFERRAL_BONUS:
                values[User.referral_bonus] = User.referral_bonus + amount_dec

            updated = (
                db.session.query(User)
                .filter(User.id == account_id)
                .update(values, synchronize_session="fetch")
            )
            if updated == 0:
                raise NotFound(f"Account {account_id} not found")

            transaction = record_transaction(
                account_id, tx_type, amount_dec, TransactionStatus.COMPLETED.value,
                description=reason, investment_id=investment_id, withdrawal_id=withdrawal_id,
            )

        logger.info(f"Credited {amount_dec} to account {account_id} ({tx_type}): {reason}")
        return transaction

    @staticmethod
    def debit(account_id: int, amount, reason: str,
              tx_type: str = TransactionType.WITHDRAWAL.value,
              investment_id: int = None,
              withdrawal_id: int = None,
              record: bool = True) -> Optional[Transaction]:
        """
        Decrease balance or raise InsufficientFunds without touching anything.

        ``record=False`` is for callers that already own a pending transaction
        for this movement and will progress its status themselves.
        """
        amount_dec = BalanceAccounting._positive(amount)

        with atomic():
            updated = (
                db.session.query(User)
                .filter(User.id == account_id, User.balance >= amount_dec)
                .update({User.balance: User.balance - amount_dec}, synchronize_session="fetch")
            )
            if updated == 0:
                # distinguish a missing account from a short balance
                current = BalanceAccounting.get_balance(account_id)
                logger.warning(
                    f"Debit of {amount_dec} refused for account {account_id}: balance {current}"
                )
                raise InsufficientFunds(
                    "Insufficient balance", balance=float(current), requested=float(amount_dec)
                )

            transaction = None
            if record:
                transaction = record_transaction(
                    account_id, tx_type, amount_dec, TransactionStatus.COMPLETED.value,
                    description=reason, investment_id=investment_id, withdrawal_id=withdrawal_id,
                )

        logger.info(f"Debited {amount_dec} from account {account_id} ({tx_type}): {reason}")
        return transaction
