"""
Investment state machine.

    pending --approve--> active --(day 7 claimed | term expired)--> completed
    pending --reject---> rejected
    active  --cancel---> cancelled

Every transition is a guarded UPDATE (``WHERE status = <from>``) so two
concurrent requests can never both move the same investment: the loser updates
zero rows and gets InvalidState, and its unit of work rolls back.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
import logging
from typing import List

from extensions import db
from models import (
    FundingSource, Investment, InvestmentStatus, Transaction, TransactionStatus,
    TransactionType, User,
)
from ledger.balance import BalanceAccounting, record_transaction
from ledger.errors import Forbidden, InvalidAmount, InvalidState
from ledger.notifications import notify
from ledger.profit import resolve_terms
from ledger.referrals import ReferralBonusTrigger
from ledger.store import Caller, atomic, get_or_404, now_utc, require_caller, setting, to_money

logger = logging.getLogger(__name__)

PENDING = InvestmentStatus.PENDING.value
ACTIVE = InvestmentStatus.ACTIVE.value
REJECTED = InvestmentStatus.REJECTED.value
COMPLETED = InvestmentStatus.COMPLETED.value
CANCELLED = InvestmentStatus.CANCELLED.value

ALLOWED_TRANSITIONS = {
    PENDING: {ACTIVE, REJECTED},
    ACTIVE: {COMPLETED, CANCELLED},
    REJECTED: set(),
    COMPLETED: set(),
    CANCELLED: set(),
}


@dataclass
class SweepResult:
    scanned: int = 0
    completed: int = 0
    investment_ids: List[int] = field(default_factory=list)

    def to_dict(self):
        return {"scanned": self.scanned, "completed": self.completed, "investmentIds": self.investment_ids}


class InvestmentStateMachine:

    # ------------------------------------------------------------------
    # transition primitive
    # ------------------------------------------------------------------
    @staticmethod
    def transition(investment: Investment, to_status: str, extra_filters=(), **values) -> Investment:
        from_status = investment.status
        if to_status not in ALLOWED_TRANSITIONS.get(from_status, set()):
            raise InvalidState(
                f"Investment {investment.id} cannot move from {from_status} to {to_status}",
                status=from_status,
            )

        updates = {Investment.status: to_status}
        for name, value in values.items():
            updates[getattr(Investment, name)] = value

        moved = (
            db.session.query(Investment)
            .filter(Investment.id == investment.id, Investment.status == from_status, *extra_filters)
            .update(updates, synchronize_session="fetch")
        )
        if moved == 0:
            db.session.refresh(investment)
            raise InvalidState(
                f"Investment {investment.id} is no longer {from_status}",
                status=investment.status,
            )

        logger.info(f"Investment {investment.id}: {from_status} -> {to_status}")
        return investment

    @staticmethod
    def _settle_funding_transaction(investment: Investment, status: str):
        (
            db.session.query(Transaction)
            .filter(
                Transaction.investment_id == investment.id,
                Transaction.type == TransactionType.INVESTMENT.value,
                Transaction.status == TransactionStatus.PENDING.value,
            )
            .update({Transaction.status: status}, synchronize_session="fetch")
        )

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------
    @staticmethod
    def create(caller: Caller, principal, profit_model: str = None, now=None) -> Investment:
        """Create a pending investment plus its pending audit transaction. No debit yet."""
        require_caller(caller)
        amount = to_money(principal, "principal")
        minimum = Decimal(str(setting("MIN_INVESTMENT")))
        maximum = Decimal(str(setting("MAX_INVESTMENT")))
        if amount < minimum or amount > maximum:
            raise InvalidAmount(
                f"Investment must be between {minimum:,.2f} and {maximum:,.2f}",
                minimum=float(minimum), maximum=float(maximum),
            )

        with atomic():
            user = get_or_404(User, caller.account_id, "Account")
            if not user.is_active:
                raise Forbidden("Account is inactive")

            # wallet-funded positions are debited on approval; otherwise the
            # admin is confirming an external deposit
            funding = (
                FundingSource.WALLET.value
                if Decimal(str(user.balance)) >= amount
                else FundingSource.DEPOSIT.value
            )
            model_name, rate, daily_profit = resolve_terms(amount, profit_model)

            investment = Investment(
                user_id=user.id,
                principal=amount,
                status=PENDING,
                funding_source=funding,
                profit_model=model_name,
                profit_rate=rate,
                daily_profit_amount=daily_profit,
                daily_bonus_amount=Decimal(str(setting("DAILY_BONUS_AMOUNT"))),
                term_days=int(setting("INVESTMENT_TERM_DAYS")),
                days_completed=0,
                created_at=now_utc(now),
            )
            db.session.add(investment)
            db.session.flush()

            record_transaction(
                user.id, TransactionType.INVESTMENT.value, amount,
                TransactionStatus.PENDING.value,
                description="Investment created",
                investment_id=investment.id,
            )

        logger.info(
            f"Investment {investment.id} created for account {user.id}: "
            f"{amount} ({funding}, {model_name} {rate})"
        )
        return investment

    # ------------------------------------------------------------------
    # admin transitions
    # ------------------------------------------------------------------
    @staticmethod
    def approve(investment_id: int, now=None) -> Investment:
        moment = now_utc(now)
        with atomic():
            investment = get_or_404(Investment, investment_id, "Investment")
            InvestmentStateMachine.transition(
                investment, ACTIVE,
                start_date=moment,
                end_date=moment + timedelta(days=investment.term_days),
            )

            if investment.funding_source == FundingSource.WALLET.value:
                BalanceAccounting.debit(
                    investment.user_id, investment.principal,
                    f"Funding for investment #{investment.id}",
                    tx_type=TransactionType.INVESTMENT.value,
                    investment_id=investment.id,
                    record=False,
                )
            InvestmentStateMachine._settle_funding_transaction(investment, TransactionStatus.COMPLETED.value)

            ReferralBonusTrigger.on_activation(investment, now=moment)

            notify(
                investment.user_id,
                "Investment approved",
                f"Your investment of {investment.principal:,.2f} is now active. "
                f"Claim your daily payout every day for {investment.term_days} days.",
            )
        return investment

    @staticmethod
    def reject(investment_id: int, reason: str = None) -> Investment:
        with atomic():
            investment = get_or_404(Investment, investment_id, "Investment")
            InvestmentStateMachine.transition(investment, REJECTED)
            InvestmentStateMachine._settle_funding_transaction(investment, TransactionStatus.FAILED.value)
            message = f"Your investment of {investment.principal:,.2f} was rejected."
            if reason:
                message = f"{message} Reason: {reason}"
            notify(investment.user_id, "Investment rejected", message[:1000])
        return investment

    @staticmethod
    def cancel(investment_id: int, now=None) -> Investment:
        with atomic():
            investment = get_or_404(Investment, investment_id, "Investment")
            InvestmentStateMachine.transition(investment, CANCELLED, completed_at=now_utc(now))
            notify(investment.user_id, "Investment cancelled",
                   f"Your investment #{investment.id} has been cancelled by an administrator.")
        return investment

    # ------------------------------------------------------------------
    # completion
    # ------------------------------------------------------------------
    @staticmethod
    def complete(investment: Investment, now=None, extra_filters=(), **values) -> Investment:
        """Move an active investment to completed; must run inside a unit of work."""
        InvestmentStateMachine.transition(
            investment, COMPLETED, extra_filters=extra_filters,
            completed_at=now_utc(now), **values
        )
        notify(
            investment.user_id,
            "Investment completed",
            f"Your investment #{investment.id} of {investment.principal:,.2f} has completed its term.",
        )
        return investment

    @staticmethod
    def sweep_expired(now=None) -> SweepResult:
        """
        Complete every active investment already past its end date.

        Safe to run repeatedly and alongside claims: rows already completed are
        not selected, and a row completed by a concurrent day-7 claim makes the
        guarded update match nothing.
        """
        moment = now_utc(now)
        result = SweepResult()

        with atomic():
            expired = (
                Investment.query
                .filter(Investment.status == ACTIVE, Investment.end_date <= moment)
                .order_by(Investment.id)
                .all()
            )
            result.scanned = len(expired)
            for investment in expired:
                # a failed guarded update writes nothing, so the unit stays clean
                try:
                    InvestmentStateMachine.complete(
                        investment, now=moment,
                        extra_filters=(Investment.end_date <= moment,),
                    )
                except InvalidState:
                    logger.info(f"Sweep skipped investment {investment.id}: already {investment.status}")
                    continue
                result.completed += 1
                result.investment_ids.append(investment.id)

        logger.info(f"Sweep at {moment.isoformat()}: scanned {result.scanned}, completed {result.completed}")
        return result


# Module-level aliases for the public core interface
create_investment = InvestmentStateMachine.create
sweep_expired_investments = InvestmentStateMachine.sweep_expired
