import logging
import re

from flask import Blueprint, jsonify, session
from flask_login import login_user, logout_user

from extensions import db
from ledger import atomic
from ledger.referrals import generate_referral_code, link_referral
from blueprints.session_helpers import current_caller, json_body, json_text
from models import User

logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="")

MIN_PASSWORD_LENGTH = 6


def validate_email(email):
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/api/signup", methods=["POST"])
def signup():
    """
    Create a new account, optionally attached to a referrer.

    Expected JSON:
    {
        "username": "",
        "email": "",
        "password": "",
        "referralCode": ""     (optional)
    }
    """
    data = json_body()
    if not data:
        return jsonify({"error": "Invalid or missing JSON body"}), 400

    username = json_text(data, "username", "fullName")
    email = json_text(data, "email").lower()
    password = json_text(data, "password", strip=False)
    referral_code = json_text(data, "referralCode").upper()

    # -----------------------------------------
    #  BASIC VALIDATION
    # -----------------------------------------
    if not username or not email or not password:
        return jsonify({"error": "All fields are required"}), 400
    if not validate_email(email):
        return jsonify({"error": "Invalid email address"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    exists = User.query.filter((User.email == email) | (User.username == username)).first()
    if exists:
        return jsonify({"error": "Email or username already registered"}), 400

    if referral_code and not User.query.filter_by(referral_code=referral_code).first():
        return jsonify({"error": "Invalid referral code"}), 400

    # -----------------------------------------
    #  ACCOUNT + REFERRAL EDGE IN ONE UNIT
    # -----------------------------------------
    with atomic():
        new_user = User(
            username=username,
            email=email,
            referral_code=generate_referral_code(),
        )
        new_user.set_password(password)
        db.session.add(new_user)
        db.session.flush()

        if referral_code:
            link_referral(new_user, referral_code)

    logger.info(f"New account {new_user.id} registered (referred_by={new_user.referred_by})")
    return jsonify({
        "status": "success",
        "message": "Signup successful",
        "user": new_user.to_dict(),
    }), 201


# --------------------------------------------------
#      Login Route
# --------------------------------------------------
@bp.route("/api/login", methods=["POST"])
def login():
    """
    Authenticate a user.
    Expected JSON:
    {
        "email": "",
        "password": ""
    }
    """
    data = json_body()
    email = json_text(data, "email").lower()
    password = json_text(data, "password", strip=False)

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        logger.warning(f"Failed login attempt for {email}")
        return jsonify({"error": "Invalid credentials"}), 401
    if not user.is_active:
        return jsonify({"error": "Account is inactive"}), 403

    login_user(user)
    session["user_id"] = user.id

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict()
    }), 200


#-----------------------------------------------------------------------------------------------------
@bp.route("/api/logout", methods=["POST"])
def logout():
    """
    Destroy User session
    """
    logout_user()
    session.clear()
    return jsonify({"message": "Logged out successfully"}), 200


# --------------------------------------------------
# Check Session (for frontend auto-login)
# --------------------------------------------------
@bp.route("/api/session", methods=["GET"])
def check_session():
    """Returns current logged-in user data if authenticated"""
    if not session.get("user_id"):
        return jsonify({"authenticated": False}), 200

    caller = current_caller()
    user = db.session.get(User, caller.account_id)
    return jsonify({
        "authenticated": True,
        "user": user.to_dict()
    }), 200
