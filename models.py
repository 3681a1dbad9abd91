# models.py - Flask-SQLAlchemy models for the investment ledger
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from flask_login import UserMixin
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from extensions import db
from werkzeug.security import check_password_hash, generate_password_hash


def utcnow():
    """Naive UTC timestamp; every DateTime column in this schema is UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value else None

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class Role(Enum):
    USER = "user"
    ADMIN = "admin"


class InvestmentStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FundingSource(Enum):
    WALLET = "wallet"      # debited from balance on approval
    DEPOSIT = "deposit"    # paid in externally, confirmed by the admin


class TransactionType(Enum):
    INVESTMENT = "investment"
    PAYOUT = "payout"
    WITHDRAWAL = "withdrawal"
    REFERRAL_BONUS = "referral_bonus"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WithdrawalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

# ===========================================================
# ACCOUNTS
# ===========================================================

class User(db.Model, BaseMixin, UserMixin):
    """One account per user. Money columns are mutated only by ledger.balance."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.USER.value, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    earnings = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    referral_bonus = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))

    referral_code = db.Column(db.String(20), unique=True, nullable=False)
    referred_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    investments = db.relationship('Investment', back_populates='user', lazy='dynamic')

    __table_args__ = (
        CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        Index('idx_user_referral_code', 'referral_code'),
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == Role.ADMIN.value

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "balance": _money(self.balance),
            "earnings": _money(self.earnings),
            "referralBonus": _money(self.referral_bonus),
            "referralCode": self.referral_code,
            "memberSince": _iso(self.created_at),
        }

# ===========================================================
# INVESTMENTS & PAYOUTS
# ===========================================================

class Investment(db.Model, BaseMixin):
    __tablename__ = 'investments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    principal = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=InvestmentStatus.PENDING.value)
    funding_source = db.Column(db.String(20), nullable=False, default=FundingSource.DEPOSIT.value)

    # Profit model: "percentage" uses profit_rate as a daily rate, "flat" as a daily amount
    profit_model = db.Column(db.String(20), nullable=False, default="percentage")
    profit_rate = db.Column(db.Numeric(18, 6), nullable=False)
    daily_profit_amount = db.Column(db.Numeric(18, 2), nullable=False)
    daily_bonus_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"))

    term_days = db.Column(db.Integer, nullable=False, default=7)
    days_completed = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    last_payout_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship('User', back_populates='investments')
    payouts = db.relationship('Payout', back_populates='investment', lazy='dynamic',
                              order_by='Payout.day_index')

    __table_args__ = (
        CheckConstraint('days_completed >= 0 AND days_completed <= term_days', name='chk_days_completed_range'),
        Index('idx_investment_user_status', 'user_id', 'status'),
        Index('idx_investment_status_end', 'status', 'end_date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "principal": _money(self.principal),
            "status": self.status,
            "fundingSource": self.funding_source,
            "profitModel": self.profit_model,
            "profitRate": float(self.profit_rate) if self.profit_rate is not None else None,
            "dailyProfit": _money(self.daily_profit_amount),
            "dailyBonus": _money(self.daily_bonus_amount),
            "termDays": self.term_days,
            "daysCompleted": self.days_completed,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "lastPayoutDate": _iso(self.last_payout_date),
            "completedAt": _iso(self.completed_at),
            "createdAt": _iso(self.created_at),
        }


class Payout(db.Model):
    """One row per claimed day. The unique constraint is the double-claim guard."""
    __tablename__ = 'payouts'

    id = db.Column(db.Integer, primary_key=True)
    investment_id = db.Column(db.Integer, db.ForeignKey('investments.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    day_index = db.Column(db.Integer, nullable=False)
    profit = db.Column(db.Numeric(18, 2), nullable=False)
    bonus = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    claimed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    investment = db.relationship('Investment', back_populates='payouts')

    __table_args__ = (
        UniqueConstraint('investment_id', 'day_index', name='uq_payout_investment_day'),
        CheckConstraint('day_index >= 1', name='chk_payout_day_index'),
    )

    @property
    def total(self):
        return Decimal(str(self.profit)) + Decimal(str(self.bonus))

    def to_dict(self):
        return {
            "id": self.id,
            "investmentId": self.investment_id,
            "day": self.day_index,
            "profit": _money(self.profit),
            "bonus": _money(self.bonus),
            "total": _money(self.total),
            "claimedAt": _iso(self.claimed_at),
        }

# ===========================================================
# LEDGER TRANSACTIONS & WITHDRAWALS
# ===========================================================

class Transaction(db.Model, BaseMixin):
    """Append-only ledger entry; only status may progress after insert."""
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.PENDING.value)
    description = db.Column(db.String(255))
    reference = db.Column(db.String(64), unique=True, nullable=False, index=True)
    investment_id = db.Column(db.Integer, db.ForeignKey('investments.id', ondelete='SET NULL'), nullable=True, index=True)
    withdrawal_id = db.Column(db.Integer, db.ForeignKey('withdrawal_requests.id', ondelete='SET NULL'), nullable=True, index=True)

    __table_args__ = (
        Index('idx_transaction_user_created', 'user_id', 'created_at'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "amount": _money(self.amount),
            "status": self.status,
            "description": self.description,
            "reference": self.reference,
            "investmentId": self.investment_id,
            "withdrawalId": self.withdrawal_id,
            "createdAt": _iso(self.created_at),
        }


class WithdrawalRequest(db.Model, BaseMixin):
    __tablename__ = 'withdrawal_requests'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    bank_name = db.Column(db.String(100), nullable=False)
    account_number = db.Column(db.String(10), nullable=False)
    account_name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=WithdrawalStatus.PENDING.value, index=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    user = db.relationship('User', foreign_keys=[user_id])

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "accountName": self.account_name,
            "status": self.status,
            "processedAt": _iso(self.processed_at),
            "createdAt": _iso(self.created_at),
        }
        if include_user and self.user:
            data["email"] = self.user.email
            data["username"] = self.user.username
        return data

# ===========================================================
# REFERRALS & NOTIFICATIONS
# ===========================================================

class Referral(db.Model, BaseMixin):
    __tablename__ = 'referrals'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    # an account can only be referred once
    referred_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    first_investment_completed = db.Column(db.Boolean, nullable=False, default=False)
    bonus_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    completed_at = db.Column(db.DateTime, nullable=True)

    referrer = db.relationship('User', foreign_keys=[referrer_id])
    referred = db.relationship('User', foreign_keys=[referred_id])

    __table_args__ = (
        CheckConstraint('referrer_id <> referred_id', name='chk_no_self_referral'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "referredId": self.referred_id,
            "referredUsername": self.referred.username if self.referred else None,
            "firstInvestmentCompleted": self.first_investment_completed,
            "bonusAmount": _money(self.bonus_amount),
            "completedAt": _iso(self.completed_at),
            "createdAt": _iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "createdAt": _iso(self.created_at),
        }
