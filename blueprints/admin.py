#======================================================================================
#
# ADMIN API: approvals, withdrawals, notifications, sweep
#
#=======================================================================================
import logging

from flask import Blueprint, g, jsonify, request

from ledger import AdminApprovalGateway
from ledger.notifications import create_notification
from ledger.views import admin_stats, admin_withdrawals, pending_investments
from blueprints.session_helpers import admin_required, json_body, json_text

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route("/stats", methods=["GET"])
@admin_required
def stats():
    return jsonify(admin_stats(g.caller)), 200


#============================================================================================================
#     INVESTMENTS
#============================================================================================================
@admin_bp.route("/investments/pending", methods=["GET"])
@admin_required
def list_pending_investments():
    investments = pending_investments(g.caller)
    return jsonify({
        "investments": [investment.to_dict() for investment in investments],
        "count": len(investments),
    }), 200


@admin_bp.route("/investments/<int:investment_id>/approve", methods=["POST"])
@admin_required
def approve_investment(investment_id):
    investment = AdminApprovalGateway.approve_investment(g.caller, investment_id)
    return jsonify({"message": "Investment approved", "investment": investment.to_dict()}), 200


@admin_bp.route("/investments/<int:investment_id>/reject", methods=["POST"])
@admin_required
def reject_investment(investment_id):
    reason = json_text(json_body(), "reason") or None
    investment = AdminApprovalGateway.reject_investment(g.caller, investment_id, reason=reason)
    return jsonify({"message": "Investment rejected", "investment": investment.to_dict()}), 200


@admin_bp.route("/investments/<int:investment_id>/cancel", methods=["POST"])
@admin_required
def cancel_investment(investment_id):
    investment = AdminApprovalGateway.cancel_investment(g.caller, investment_id)
    return jsonify({"message": "Investment cancelled", "investment": investment.to_dict()}), 200


@admin_bp.route("/sweep", methods=["POST"])
@admin_required
def sweep():
    result = AdminApprovalGateway.sweep_expired(g.caller)
    return jsonify({"message": "Sweep finished", "result": result.to_dict()}), 200


#============================================================================================================
#     WITHDRAWALS
#============================================================================================================
@admin_bp.route("/withdrawals", methods=["GET"])
@admin_required
def list_withdrawals():
    # ?status=all lists every request
    status = request.args.get("status", "pending")
    withdrawals = admin_withdrawals(g.caller, status=None if status == "all" else status)
    return jsonify({
        "withdrawals": [
            {**w.to_dict(include_user=True), "hasInvited": bool(has_invited)}
            for w, has_invited in withdrawals
        ],
        "count": len(withdrawals),
    }), 200


@admin_bp.route("/withdrawals/<int:withdrawal_id>/approve", methods=["POST"])
@admin_required
def approve_withdrawal(withdrawal_id):
    withdrawal = AdminApprovalGateway.approve_withdrawal(g.caller, withdrawal_id)
    return jsonify({
        "message": "Withdrawal approved",
        "withdrawal": withdrawal.to_dict(include_user=True),
    }), 200


@admin_bp.route("/withdrawals/<int:withdrawal_id>/reject", methods=["POST"])
@admin_required
def reject_withdrawal(withdrawal_id):
    withdrawal = AdminApprovalGateway.reject_withdrawal(g.caller, withdrawal_id)
    return jsonify({
        "message": "Withdrawal rejected",
        "withdrawal": withdrawal.to_dict(include_user=True),
    }), 200


#============================================================================================================
#     NOTIFICATIONS
#============================================================================================================
@admin_bp.route("/notifications", methods=["POST"])
@admin_required
def send_notification():
    """
    Expected JSON:
    {
        "userId": 1,
        "title": "",
        "message": ""
    }
    """
    data = json_body()
    notification = create_notification(g.caller, data.get("userId"), data.get("title"), data.get("message"))
    return jsonify({"message": "Notification sent", "notification": notification.to_dict()}), 201
