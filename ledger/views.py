"""Read-only projections of the ledger, newest first."""
from decimal import Decimal
import logging

from sqlalchemy import exists

from extensions import db
from models import (
    Investment, InvestmentStatus, Payout, Referral, Transaction, User,
    WithdrawalRequest, WithdrawalStatus,
)
from ledger.notifications import unread_count
from ledger.store import Caller, get_or_404, require_admin, require_caller, setting

logger = logging.getLogger(__name__)

# statuses whose principal counts as invested
_FUNDED = (
    InvestmentStatus.ACTIVE.value,
    InvestmentStatus.COMPLETED.value,
    InvestmentStatus.CANCELLED.value,
)


def _newest_first(query, model, limit=None):
    query = query.order_by(model.created_at.desc(), model.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_investments(caller: Caller, status: str = None, limit: int = None):
    require_caller(caller)
    query = Investment.query.filter_by(user_id=caller.account_id)
    if status:
        query = query.filter_by(status=status)
    return _newest_first(query, Investment, limit)


def list_transactions(caller: Caller, tx_type: str = None, limit: int = None):
    require_caller(caller)
    query = Transaction.query.filter_by(user_id=caller.account_id)
    if tx_type:
        query = query.filter_by(type=tx_type)
    return _newest_first(query, Transaction, limit)


def list_withdrawals(caller: Caller, limit: int = None):
    require_caller(caller)
    return _newest_first(WithdrawalRequest.query.filter_by(user_id=caller.account_id), WithdrawalRequest, limit)


def list_referrals(caller: Caller):
    require_caller(caller)
    return _newest_first(Referral.query.filter_by(referrer_id=caller.account_id), Referral)


def list_account_payouts(caller: Caller, limit: int = None):
    require_caller(caller)
    query = (
        Payout.query
        .filter_by(user_id=caller.account_id)
        .order_by(Payout.claimed_at.desc(), Payout.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def _sum(column, *filters) -> Decimal:
    total = db.session.query(db.func.coalesce(db.func.sum(column), 0)).filter(*filters).scalar()
    return Decimal(str(total or 0))


def account_summary(caller: Caller) -> dict:
    """Dashboard numbers for one account."""
    require_caller(caller)
    user = get_or_404(User, caller.account_id, "Account")

    counts = dict(
        db.session.query(Investment.status, db.func.count(Investment.id))
        .filter(Investment.user_id == user.id)
        .group_by(Investment.status)
        .all()
    )
    total_invested = _sum(
        Investment.principal,
        Investment.user_id == user.id,
        Investment.status.in_(_FUNDED),
    )
    referral_count = Referral.query.filter_by(referrer_id=user.id).count()
    base_url = (setting("APP_BASE_URL") or "").rstrip("/")

    return {
        "user": user.to_dict(),
        "balance": float(user.balance or 0),
        "earnings": float(user.earnings or 0),
        "referralBonus": float(user.referral_bonus or 0),
        "totalInvested": float(total_invested),
        "pendingInvestments": counts.get(InvestmentStatus.PENDING.value, 0),
        "activeInvestments": counts.get(InvestmentStatus.ACTIVE.value, 0),
        "completedInvestments": counts.get(InvestmentStatus.COMPLETED.value, 0),
        "referralCount": referral_count,
        "referralLink": f"{base_url}/signup?ref={user.referral_code}",
        "unreadNotifications": unread_count(user.id),
    }


# ==========================================================
#                  ADMIN VIEWS
# ==========================================================
def admin_stats(caller: Caller) -> dict:
    require_admin(caller)
    return {
        "totalUsers": User.query.count(),
        "activeUsers": User.query.filter_by(is_active=True).count(),
        "pendingInvestments": Investment.query.filter_by(status=InvestmentStatus.PENDING.value).count(),
        "activeInvestments": Investment.query.filter_by(status=InvestmentStatus.ACTIVE.value).count(),
        "pendingWithdrawals": WithdrawalRequest.query.filter_by(status=WithdrawalStatus.PENDING.value).count(),
        "pendingWithdrawalAmount": float(
            _sum(WithdrawalRequest.amount, WithdrawalRequest.status == WithdrawalStatus.PENDING.value)
        ),
        "totalInvested": float(_sum(Investment.principal, Investment.status.in_(_FUNDED))),
        "totalPaidOut": float(_sum(Payout.profit) + _sum(Payout.bonus)),
    }


def pending_investments(caller: Caller):
    require_admin(caller)
    return _newest_first(
        Investment.query.filter_by(status=InvestmentStatus.PENDING.value), Investment
    )


def admin_withdrawals(caller: Caller, status: str = WithdrawalStatus.PENDING.value):
    """(withdrawal, has_invited) rows; has_invited is true when the requester referred anyone."""
    require_admin(caller)
    has_invited = (
        exists()
        .where(Referral.referrer_id == WithdrawalRequest.user_id)
        .correlate(WithdrawalRequest)
        .label("has_invited")
    )
    query = db.session.query(WithdrawalRequest, has_invited)
    if status:
        query = query.filter(WithdrawalRequest.status == status)
    return _newest_first(query, WithdrawalRequest)
