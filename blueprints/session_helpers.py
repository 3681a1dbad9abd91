from functools import wraps
import logging

from flask import g, request, session
from werkzeug.exceptions import BadRequest

from extensions import db
from ledger import Caller, Unauthorized
from ledger.store import require_admin
from models import User

logger = logging.getLogger(__name__)


def current_caller() -> Caller:
    """Build the ledger Caller for the logged-in session user."""
    user_id = session.get("user_id")
    if not user_id:
        raise Unauthorized("Please log in to access this endpoint")

    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        session.clear()
        raise Unauthorized("Session is no longer valid")
    return Caller.from_user(user)


def login_required_json(f):
    """Like flask_login.login_required, but answers with a JSON 401 and sets g.caller."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.caller = current_caller()
        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Resolves the session user (401 if missing).
    - Re-reads the role from the database, so a demoted admin loses access at once.
    - Raises Forbidden (403) if not an admin.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller = current_caller()
        require_admin(caller)
        g.caller = caller
        return f(*args, **kwargs)

    return decorated_function


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def json_text(data: dict, *names, strip=True) -> str:
    """First non-empty string among ``names``; anything that isn't a string is a 400."""
    for name in names:
        value = data.get(name)
        if value is None or value == "":
            continue
        if not isinstance(value, str):
            raise BadRequest(f"{name} must be a string")
        return value.strip() if strip else value
    return ""
