"""Typed business-rule failures raised by the ledger core.

Every error carries a stable ``code`` (rendered to API clients) and the HTTP
status the blueprints answer with. None of them is fatal: the unit of work
rolls back and the caller decides how to present the failure.
"""


class LedgerError(Exception):
    """Base ledger exception"""
    code = "ledger_error"
    status_code = 400
    default_message = "Ledger operation failed"

    def __init__(self, message=None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        data = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    default_message = "Invalid amount"


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"
    default_message = "Insufficient balance"


class InvalidState(LedgerError):
    code = "invalid_state"
    status_code = 409
    default_message = "Operation not allowed in the current state"


class AlreadyClaimedToday(LedgerError):
    code = "already_claimed_today"
    status_code = 409
    default_message = "Daily payout already claimed today"


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidBankDetails(LedgerError):
    code = "invalid_bank_details"
    default_message = "Invalid bank details"


class Unauthorized(LedgerError):
    code = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(LedgerError):
    code = "forbidden"
    status_code = 403
    default_message = "You are not allowed to perform this action"
