from decimal import Decimal
import logging
import re
from typing import Tuple

from extensions import db
from models import (
    Transaction, TransactionStatus, TransactionType, User, WithdrawalRequest,
    WithdrawalStatus,
)
from ledger.balance import BalanceAccounting, record_transaction
from ledger.errors import Forbidden, InsufficientFunds, InvalidAmount, InvalidBankDetails, InvalidState
from ledger.notifications import notify
from ledger.store import Caller, atomic, get_or_404, now_utc, require_caller, setting, to_money

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER_RE = re.compile(r"^\d{10}$")
ACCOUNT_NAME_RE = re.compile(r"^[A-Za-z\s]{2,100}$")
MAX_BANK_NAME_LENGTH = 100


# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:

    @staticmethod
    def validate_amount(amount) -> Decimal:
        amount_dec = to_money(amount)
        minimum = Decimal(str(setting("MIN_WITHDRAWAL")))
        if amount_dec <= 0:
            raise InvalidAmount("Amount must be positive")
        if amount_dec < minimum:
            raise InvalidAmount(f"Minimum withdrawal amount is {minimum:,.2f}", minimum=float(minimum))
        return amount_dec

    @staticmethod
    def _text(value, field: str) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise InvalidBankDetails(f"{field} must be a string", field=field)
        return value.strip()

    @staticmethod
    def validate_bank_details(bank_name, account_number, account_name) -> Tuple[str, str, str]:
        bank_name = WithdrawalValidator._text(bank_name, "bankName")
        account_number = WithdrawalValidator._text(account_number, "accountNumber")
        account_name = WithdrawalValidator._text(account_name, "accountName")

        if not bank_name:
            raise InvalidBankDetails("Bank name is required", field="bankName")
        if len(bank_name) > MAX_BANK_NAME_LENGTH:
            raise InvalidBankDetails("Bank name is too long", field="bankName")
        if not ACCOUNT_NUMBER_RE.match(account_number):
            raise InvalidBankDetails("Account number must be exactly 10 digits", field="accountNumber")
        if len(account_name) < 2:
            raise InvalidBankDetails("Account name must be at least 2 characters", field="accountName")
        if len(account_name) > 100:
            raise InvalidBankDetails("Account name must be less than 100 characters", field="accountName")
        if not ACCOUNT_NAME_RE.match(account_name):
            raise InvalidBankDetails("Account name must contain only letters and spaces", field="accountName")
        return bank_name, account_number, account_name


# ==========================================================
#                  WITHDRAWAL SERVICE
# ==========================================================
class WithdrawalService:

    @staticmethod
    def request(caller: Caller, amount, bank_name, account_number, account_name) -> WithdrawalRequest:
        """Create a pending withdrawal; the balance is only debited on approval."""
        require_caller(caller)
        amount_dec = WithdrawalValidator.validate_amount(amount)
        bank_name, account_number, account_name = WithdrawalValidator.validate_bank_details(
            bank_name, account_number, account_name
        )

        with atomic():
            user = get_or_404(User, caller.account_id, "Account")
            if not user.is_active:
                raise Forbidden("Account is inactive")

            balance = BalanceAccounting.get_balance(user.id)
            if amount_dec > balance:
                logger.warning(f"Withdrawal of {amount_dec} refused for account {user.id}: balance {balance}")
                raise InsufficientFunds(
                    f"Maximum withdrawal amount is {balance:,.2f}",
                    balance=float(balance), requested=float(amount_dec),
                )

            withdrawal = WithdrawalRequest(
                user_id=user.id,
                amount=amount_dec,
                bank_name=bank_name,
                account_number=account_number,
                account_name=account_name,
                status=WithdrawalStatus.PENDING.value,
            )
            db.session.add(withdrawal)
            db.session.flush()

            record_transaction(
                user.id, TransactionType.WITHDRAWAL.value, amount_dec,
                TransactionStatus.PENDING.value,
                description=f"Withdrawal to {bank_name} ({account_number[-4:]})",
                withdrawal_id=withdrawal.id,
            )

        logger.info(f"Withdrawal {withdrawal.id} requested by account {user.id}: {amount_dec}")
        return withdrawal

    @staticmethod
    def _resolve(withdrawal: WithdrawalRequest, to_status: str, admin_id: int, now=None):
        moved = (
            db.session.query(WithdrawalRequest)
            .filter(WithdrawalRequest.id == withdrawal.id,
                    WithdrawalRequest.status == WithdrawalStatus.PENDING.value)
            .update({
                WithdrawalRequest.status: to_status,
                WithdrawalRequest.processed_at: now_utc(now),
                WithdrawalRequest.processed_by: admin_id,
            }, synchronize_session="fetch")
        )
        if moved == 0:
            db.session.refresh(withdrawal)
            raise InvalidState(
                f"Withdrawal {withdrawal.id} is already {withdrawal.status}",
                status=withdrawal.status,
            )

    @staticmethod
    def _settle_transaction(withdrawal: WithdrawalRequest, status: str):
        (
            db.session.query(Transaction)
            .filter(Transaction.withdrawal_id == withdrawal.id,
                    Transaction.status == TransactionStatus.PENDING.value)
            .update({Transaction.status: status}, synchronize_session="fetch")
        )

    @staticmethod
    def approve(withdrawal_id: int, admin_id: int = None, now=None) -> WithdrawalRequest:
        """pending -> approved with exactly one debit; InsufficientFunds undoes the whole approval."""
        with atomic():
            withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
            WithdrawalService._resolve(withdrawal, WithdrawalStatus.APPROVED.value, admin_id, now)
            BalanceAccounting.debit(
                withdrawal.user_id, withdrawal.amount,
                f"Withdrawal #{withdrawal.id}",
                tx_type=TransactionType.WITHDRAWAL.value,
                withdrawal_id=withdrawal.id,
                record=False,
            )
            WithdrawalService._settle_transaction(withdrawal, TransactionStatus.COMPLETED.value)
            notify(
                withdrawal.user_id,
                "Withdrawal approved",
                f"Your withdrawal of {withdrawal.amount:,.2f} to {withdrawal.bank_name} has been approved.",
            )
        logger.info(f"Withdrawal {withdrawal.id} approved by admin {admin_id}")
        return withdrawal

    @staticmethod
    def reject(withdrawal_id: int, admin_id: int = None, now=None) -> WithdrawalRequest:
        with atomic():
            withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
            WithdrawalService._resolve(withdrawal, WithdrawalStatus.REJECTED.value, admin_id, now)
            WithdrawalService._settle_transaction(withdrawal, TransactionStatus.FAILED.value)
            notify(
                withdrawal.user_id,
                "Withdrawal rejected",
                f"Your withdrawal of {withdrawal.amount:,.2f} was rejected. Your balance is unchanged.",
            )
        logger.info(f"Withdrawal {withdrawal.id} rejected by admin {admin_id}")
        return withdrawal


request_withdrawal = WithdrawalService.request
