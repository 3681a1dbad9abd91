import logging

from flask import Blueprint, g, jsonify

from ledger import request_withdrawal
from ledger.balance import BalanceAccounting
from ledger.store import setting
from ledger.views import list_withdrawals
from blueprints.session_helpers import json_body, login_required_json

logger = logging.getLogger(__name__)

bp = Blueprint("withdrawals", __name__, url_prefix="/api/withdrawals")


@bp.route("", methods=["GET"])
@login_required_json
def history():
    withdrawals = list_withdrawals(g.caller)
    return jsonify({
        "withdrawals": [withdrawal.to_dict() for withdrawal in withdrawals],
        "minimum": float(setting("MIN_WITHDRAWAL")),
        "available": float(BalanceAccounting.get_balance(g.caller.account_id)),
    }), 200


@bp.route("", methods=["POST"])
@login_required_json
def withdraw():
    """
    Expected JSON:
    {
        "amount": 1000,
        "bankName": "",
        "accountNumber": "0123456789",
        "accountName": ""
    }
    """
    data = json_body()
    withdrawal = request_withdrawal(
        g.caller,
        data.get("amount"),
        data.get("bankName"),
        data.get("accountNumber"),
        data.get("accountName"),
    )
    return jsonify({
        "message": "Withdrawal request submitted successfully",
        "withdrawal": withdrawal.to_dict(),
    }), 201
