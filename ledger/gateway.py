import logging

from models import Investment, WithdrawalRequest
from ledger.lifecycle import InvestmentStateMachine, SweepResult
from ledger.store import Caller, require_admin
from ledger.withdrawals import WithdrawalService

logger = logging.getLogger(__name__)


# ==========================================================
#                  ADMIN APPROVAL GATEWAY
# ==========================================================
class AdminApprovalGateway:
    """
    The only entry point for admin-driven transitions.

    Every method checks the caller's role before touching anything, so a
    non-admin gets Forbidden and no state changes. Resolving a request that
    is already resolved raises InvalidState from the underlying guarded update.
    """

    @staticmethod
    def approve_investment(caller: Caller, investment_id: int, now=None) -> Investment:
        require_admin(caller)
        investment = InvestmentStateMachine.approve(investment_id, now=now)
        logger.info(f"Admin {caller.account_id} approved investment {investment_id}")
        return investment

    @staticmethod
    def reject_investment(caller: Caller, investment_id: int, reason: str = None) -> Investment:
        require_admin(caller)
        investment = InvestmentStateMachine.reject(investment_id, reason=reason)
        logger.info(f"Admin {caller.account_id} rejected investment {investment_id}")
        return investment

    @staticmethod
    def cancel_investment(caller: Caller, investment_id: int, now=None) -> Investment:
        require_admin(caller)
        investment = InvestmentStateMachine.cancel(investment_id, now=now)
        logger.info(f"Admin {caller.account_id} cancelled investment {investment_id}")
        return investment

    @staticmethod
    def approve_withdrawal(caller: Caller, withdrawal_id: int, now=None) -> WithdrawalRequest:
        require_admin(caller)
        return WithdrawalService.approve(withdrawal_id, admin_id=caller.account_id, now=now)

    @staticmethod
    def reject_withdrawal(caller: Caller, withdrawal_id: int, now=None) -> WithdrawalRequest:
        require_admin(caller)
        return WithdrawalService.reject(withdrawal_id, admin_id=caller.account_id, now=now)

    @staticmethod
    def sweep_expired(caller: Caller, now=None) -> SweepResult:
        require_admin(caller)
        logger.info(f"Admin {caller.account_id} triggered the expiry sweep")
        return InvestmentStateMachine.sweep_expired(now=now)


approve_investment = AdminApprovalGateway.approve_investment
reject_investment = AdminApprovalGateway.reject_investment
cancel_investment = AdminApprovalGateway.cancel_investment
approve_withdrawal = AdminApprovalGateway.approve_withdrawal
reject_withdrawal = AdminApprovalGateway.reject_withdrawal
