"""
Daily payout engine.

Day boundary: a claim is allowed once per *calendar date* in LEDGER_TIMEZONE
(``today > last_payout_date``). The day index paid counts calendar dates in
the same timezone, ``clamp((today - local_date(start_date)).days + 1, 1, term_days)``.
Both guards are enforced in storage: the UNIQUE(investment_id, day_index)
constraint on payouts and a guarded UPDATE on the investment row, so two
concurrent claims for the same day can never both be credited.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Investment, InvestmentStatus, Payout, TransactionType
from ledger.balance import BalanceAccounting, EARNINGS
from ledger.errors import AlreadyClaimedToday, InvalidState, NotFound
from ledger.lifecycle import InvestmentStateMachine
from ledger.store import Caller, atomic, local_date, now_utc, require_caller

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutResult:
    investment_id: int
    day: int
    profit: Decimal
    bonus: Decimal
    total: Decimal
    days_completed: int
    status: str

    def to_dict(self):
        return {
            "investmentId": self.investment_id,
            "day": self.day,
            "profit": float(self.profit),
            "bonus": float(self.bonus),
            "total": float(self.total),
            "daysCompleted": self.days_completed,
            "status": self.status,
        }


class DailyPayoutEngine:

    @staticmethod
    def current_day(investment: Investment, moment: datetime) -> int:
        """Day of the term by ledger calendar date; the activation date is day 1."""
        elapsed = local_date(moment) - local_date(investment.start_date)
        day = elapsed.days + 1
        return max(1, min(day, investment.term_days))

    @staticmethod
    def _load_owned(investment_id: int, caller: Caller) -> Investment:
        investment = db.session.get(Investment, investment_id) if investment_id is not None else None
        if investment is None or investment.user_id != caller.account_id:
            raise NotFound(f"Investment {investment_id} not found")
        return investment

    @staticmethod
    def claim(investment_id: int, caller: Caller, now=None) -> PayoutResult:
        require_caller(caller)
        moment = now_utc(now)
        today = local_date(moment)

        with atomic():
            investment = DailyPayoutEngine._load_owned(investment_id, caller)

            if investment.status != InvestmentStatus.ACTIVE.value:
                raise InvalidState(
                    f"Investment {investment.id} is {investment.status}, not active",
                    status=investment.status,
                )
            if investment.last_payout_date is not None and today <= investment.last_payout_date:
                raise AlreadyClaimedToday(
                    "Daily payout already claimed today",
                    last_payout_date=investment.last_payout_date.isoformat(),
                )
            if investment.days_completed >= investment.term_days:
                raise InvalidState(f"All {investment.term_days} payouts already claimed")

            day = DailyPayoutEngine.current_day(investment, moment)
            if day == investment.term_days and Payout.query.filter_by(
                    investment_id=investment.id, day_index=day).first():
                # skipped days: the last day is paid, only completion remains
                raise InvalidState("Term finished; awaiting completion", status=investment.status)

            profit = Decimal(str(investment.daily_profit_amount))
            bonus = Decimal(str(investment.daily_bonus_amount or 0))
            total = profit + bonus

            db.session.add(Payout(
                investment_id=investment.id,
                user_id=investment.user_id,
                day_index=day,
                profit=profit,
                bonus=bonus,
                claimed_at=moment,
            ))
            try:
                db.session.flush()
            except IntegrityError:
                # another request already paid this day index
                raise AlreadyClaimedToday(f"Day {day} payout already claimed", day=day)

            if total > 0:
                BalanceAccounting.credit(
                    investment.user_id, total,
                    f"Day {day} payout for investment #{investment.id}",
                    tx_type=TransactionType.PAYOUT.value,
                    counter=EARNINGS,
                    investment_id=investment.id,
                )

            previous_days = investment.days_completed
            days_completed = previous_days + 1
            guards = (
                Investment.days_completed == previous_days,
                or_(Investment.last_payout_date.is_(None), Investment.last_payout_date < today),
            )

            if days_completed >= investment.term_days:
                InvestmentStateMachine.complete(
                    investment, now=moment, extra_filters=guards,
                    days_completed=days_completed, last_payout_date=today,
                )
            else:
                moved = (
                    db.session.query(Investment)
                    .filter(Investment.id == investment.id,
                            Investment.status == InvestmentStatus.ACTIVE.value,
                            *guards)
                    .update({
                        Investment.days_completed: days_completed,
                        Investment.last_payout_date: today,
                    }, synchronize_session="fetch")
                )
                if moved == 0:
                    raise AlreadyClaimedToday("Daily payout already claimed today")

            result = PayoutResult(
                investment_id=investment.id,
                day=day,
                profit=profit,
                bonus=bonus,
                total=total,
                days_completed=days_completed,
                status=investment.status,
            )

        logger.info(
            f"Payout claimed: investment {result.investment_id} day {result.day} "
            f"profit {profit} bonus {bonus} ({result.days_completed}/{investment.term_days})"
        )
        return result

    @staticmethod
    def list_payouts(investment_id: int, caller: Caller):
        require_caller(caller)
        investment = DailyPayoutEngine._load_owned(investment_id, caller)
        return (
            Payout.query
            .filter_by(investment_id=investment.id)
            .order_by(Payout.claimed_at.desc(), Payout.id.desc())
            .all()
        )


claim_daily_payout = DailyPayoutEngine.claim
