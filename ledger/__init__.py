"""
Investment ledger core.

Every operation takes an explicit Caller and runs as one unit of work against
db.session; failures raise a LedgerError subclass and leave nothing behind.
"""
from ledger.errors import (
    AlreadyClaimedToday, Forbidden, InsufficientFunds, InvalidAmount,
    InvalidBankDetails, InvalidState, LedgerError, NotFound, Unauthorized,
)
from ledger.store import Caller, atomic
from ledger.balance import BalanceAccounting
from ledger.lifecycle import InvestmentStateMachine, SweepResult, create_investment, sweep_expired_investments
from ledger.payouts import DailyPayoutEngine, PayoutResult, claim_daily_payout
from ledger.referrals import ReferralBonusTrigger, link_referral
from ledger.withdrawals import WithdrawalService, request_withdrawal
from ledger.gateway import (
    AdminApprovalGateway, approve_investment, approve_withdrawal, cancel_investment,
    reject_investment, reject_withdrawal,
)

__all__ = [
    "AdminApprovalGateway", "AlreadyClaimedToday", "BalanceAccounting", "Caller",
    "DailyPayoutEngine", "Forbidden", "InsufficientFunds", "InvalidAmount",
    "InvalidBankDetails", "InvalidState", "InvestmentStateMachine", "LedgerError",
    "NotFound", "PayoutResult", "ReferralBonusTrigger", "SweepResult", "Unauthorized",
    "WithdrawalService", "approve_investment", "approve_withdrawal", "atomic",
    "cancel_investment", "claim_daily_payout", "create_investment", "link_referral",
    "reject_investment", "reject_withdrawal", "request_withdrawal",
    "sweep_expired_investments",
]
