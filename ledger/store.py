"""Ledger store helpers: unit of work, caller identity, clock and references."""
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

import pytz
from flask import current_app

from extensions import db
from models import Role, utcnow
from ledger.errors import Forbidden, InvalidAmount, NotFound, Unauthorized

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
_DEPTH_KEY = "ledger_unit_depth"


# ==========================================================
#                  CALLER IDENTITY
# ==========================================================
@dataclass(frozen=True)
class Caller:
    """Who is calling into the core. Passed explicitly into every operation."""
    account_id: int
    role: str = Role.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @classmethod
    def from_user(cls, user) -> "Caller":
        return cls(account_id=user.id, role=user.role)


def require_caller(caller: Optional[Caller]) -> Caller:
    if caller is None or caller.account_id is None:
        raise Unauthorized()
    return caller


def require_admin(caller: Optional[Caller]) -> Caller:
    require_caller(caller)
    if not caller.is_admin:
        logger.warning(f"Non-admin account {caller.account_id} attempted an admin action")
        raise Forbidden("Admin privileges required")
    return caller


# ==========================================================
#                  UNIT OF WORK
# ==========================================================
@contextmanager
def atomic():
    """
    All-or-nothing block over db.session.

    Nested blocks join the outermost one; only the outermost commits, and any
    exception escaping any level rolls the whole unit back.
    """
    session = db.session
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = depth


def get_or_404(model, object_id, label=None):
    obj = db.session.get(model, object_id) if object_id is not None else None
    if obj is None:
        raise NotFound(f"{label or model.__name__} {object_id} not found")
    return obj


# ==========================================================
#                  MONEY / CLOCK / REFERENCES
# ==========================================================
def to_money(value, field_name="amount") -> Decimal:
    """Convert user input to a 2dp Decimal, raising InvalidAmount on garbage."""
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"{field_name} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"Invalid {field_name} format")
    if not amount.is_finite():
        raise InvalidAmount(f"Invalid {field_name} format")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def now_utc(now: Optional[datetime] = None) -> datetime:
    return now if now is not None else utcnow()


def ledger_timezone():
    return pytz.timezone(current_app.config.get("LEDGER_TIMEZONE", "UTC"))


def local_date(moment: datetime) -> date:
    """Calendar date of a naive-UTC moment in the configured ledger timezone."""
    return pytz.utc.localize(moment).astimezone(ledger_timezone()).date()


def new_reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


def setting(name):
    return current_app.config[name]
