from flask import Blueprint, g, jsonify, request

from ledger.notifications import list_notifications, mark_read, unread_count
from ledger.views import account_summary, list_account_payouts, list_referrals, list_transactions
from blueprints.session_helpers import login_required_json


bp = Blueprint('profile', __name__, url_prefix="/api")


# ----------------------------------------------------------------------------------
# DASHBOARD DATA FOR THE LOGGED-IN USER
# ----------------------------------------------------------------------------------
@bp.route("/profile", methods=["GET"])
@login_required_json
def get_user_profile():
    return jsonify(account_summary(g.caller)), 200


@bp.route("/transactions", methods=["GET"])
@login_required_json
def get_transactions():
    tx_type = request.args.get("type")
    limit = request.args.get("limit", type=int)
    transactions = list_transactions(g.caller, tx_type=tx_type, limit=limit)
    return jsonify({"transactions": [tx.to_dict() for tx in transactions]}), 200


@bp.route("/referrals", methods=["GET"])
@login_required_json
def get_referrals():
    referrals = list_referrals(g.caller)
    return jsonify({
        "referrals": [referral.to_dict() for referral in referrals],
        "total": len(referrals),
        "completed": sum(1 for referral in referrals if referral.first_investment_completed),
    }), 200


@bp.route("/payouts", methods=["GET"])
@login_required_json
def get_payouts():
    limit = request.args.get("limit", type=int)
    payouts = list_account_payouts(g.caller, limit=limit)
    return jsonify({"payouts": [payout.to_dict() for payout in payouts]}), 200


#=======================================================================================
#      NOTIFICATIONS
#=======================================================================================
@bp.route("/notifications", methods=["GET"])
@login_required_json
def get_notifications():
    limit = request.args.get("limit", default=10, type=int)
    notifications = list_notifications(g.caller, limit=limit)
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread": unread_count(g.caller.account_id),
    }), 200


@bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@login_required_json
def read_notification(notification_id):
    notification = mark_read(g.caller, notification_id)
    return jsonify({"notification": notification.to_dict()}), 200
