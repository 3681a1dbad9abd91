import logging

from flask import Blueprint, g, jsonify, request

from ledger import claim_daily_payout, create_investment
from ledger.balance import BalanceAccounting
from ledger.payouts import DailyPayoutEngine
from ledger.profit import PROFIT_MODELS
from ledger.views import list_investments
from blueprints.session_helpers import json_body, json_text, login_required_json

logger = logging.getLogger(__name__)

bp = Blueprint("investments", __name__, url_prefix="/api/investments")


#===========================================================================
#      LIST / CREATE
#===========================================================================
@bp.route("", methods=["GET"])
@login_required_json
def get_investments():
    status = request.args.get("status")
    investments = list_investments(g.caller, status=status)
    return jsonify({
        "investments": [investment.to_dict() for investment in investments],
        "count": len(investments),
    }), 200


@bp.route("", methods=["POST"])
@login_required_json
def create():
    """
    Expected JSON:
    {
        "amount": 2500,
        "profitModel": "percentage"   (optional)
    }
    """
    data = json_body()
    profit_model = json_text(data, "profitModel") or None
    if profit_model is not None and profit_model not in PROFIT_MODELS:
        return jsonify({
            "error": "invalid_profit_model",
            "message": f"profitModel must be one of {sorted(PROFIT_MODELS)}",
        }), 400

    investment = create_investment(g.caller, data.get("amount"), profit_model=profit_model)
    return jsonify({
        "message": "Investment submitted and awaiting approval",
        "investment": investment.to_dict(),
    }), 201


#===========================================================================
#      DAILY PAYOUT
#===========================================================================
@bp.route("/<int:investment_id>/claim", methods=["POST"])
@login_required_json
def claim(investment_id):
    result = claim_daily_payout(investment_id, g.caller)
    return jsonify({
        "message": f"Day {result.day} payout claimed successfully",
        "payout": result.to_dict(),
        "balance": float(BalanceAccounting.get_balance(g.caller.account_id)),
    }), 200


@bp.route("/<int:investment_id>/payouts", methods=["GET"])
@login_required_json
def payouts(investment_id):
    rows = DailyPayoutEngine.list_payouts(investment_id, g.caller)
    return jsonify({"payouts": [payout.to_dict() for payout in rows]}), 200
