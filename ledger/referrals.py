from decimal import Decimal, ROUND_DOWN
import logging
import secrets
import string
from typing import Optional

from flask import current_app

from extensions import db
from models import Investment, Referral, TransactionType, User, utcnow
from ledger.balance import BalanceAccounting, REFERRAL_BONUS
from ledger.errors import InvalidState, NotFound
from ledger.notifications import notify

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def generate_referral_code(length=8):
    chars = string.ascii_uppercase + string.digits
    for _ in range(10):
        code = ''.join(secrets.choice(chars) for _ in range(length))
        if not User.query.filter_by(referral_code=code).first():
            return code
    # fallback
    return ''.join(secrets.choice(chars) for _ in range(length + 4))


def link_referral(referred: User, referral_code: str) -> Referral:
    """Create the referrer -> referred edge for a freshly registered account."""
    code = (referral_code or "").strip().upper()
    referrer = User.query.filter_by(referral_code=code).first() if code else None
    if referrer is None:
        raise NotFound("Referral code not found")
    if referrer.id == referred.id:
        raise InvalidState("Cannot use your own referral code")
    if Referral.query.filter_by(referred_id=referred.id).first():
        raise InvalidState("Account already has a referrer")

    referral = Referral(referrer_id=referrer.id, referred_id=referred.id)
    referred.referred_by = referrer.id
    db.session.add(referral)
    db.session.flush()
    logger.info(f"Referral edge created: {referrer.id} -> {referred.id}")
    return referral


# ==========================================================
#                  REFERRAL BONUS TRIGGER
# ==========================================================
class ReferralBonusTrigger:
    """Pays the referrer once, on the referred account's first activated investment."""

    @staticmethod
    def bonus_for(principal) -> Decimal:
        rate = Decimal(str(current_app.config["REFERRAL_BONUS_RATE"]))
        return (Decimal(str(principal)) * rate).quantize(CENTS, rounding=ROUND_DOWN)

    @staticmethod
    def on_activation(investment: Investment, now=None) -> Optional[Referral]:
        """
        Must run inside the activation's unit of work. The guarded flag flip
        means only one activation per referral edge can ever pay out.
        """
        referral = Referral.query.filter_by(
            referred_id=investment.user_id,
            first_investment_completed=False,
        ).first()
        if referral is None:
            return None

        bonus = ReferralBonusTrigger.bonus_for(investment.principal)
        claimed = (
            db.session.query(Referral)
            .filter(Referral.id == referral.id, Referral.first_investment_completed.is_(False))
            .update({
                Referral.first_investment_completed: True,
                Referral.bonus_amount: bonus,
                Referral.completed_at: now or utcnow(),
            }, synchronize_session="fetch")
        )
        if claimed == 0:
            return None

        if bonus > 0:
            BalanceAccounting.credit(
                referral.referrer_id, bonus,
                f"Referral bonus for investment #{investment.id}",
                tx_type=TransactionType.REFERRAL_BONUS.value,
                counter=REFERRAL_BONUS,
                investment_id=investment.id,
            )
            notify(
                referral.referrer_id,
                "Referral bonus earned",
                f"You earned {bonus:,.2f} because your referral activated their first investment.",
            )

        logger.info(
            f"Referral {referral.id} completed: referrer {referral.referrer_id} "
            f"earned {bonus} on investment {investment.id}"
        )
        return referral
