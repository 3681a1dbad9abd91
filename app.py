import os
import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import Config
from extensions import db, login_manager, init_extensions
from logger import configure_app_logging
from ledger import LedgerError, atomic, sweep_expired_investments
from models import Role, User, utcnow


# --------------------------------------------------------------------------------------------------------
#       Application factory
# --------------------------------------------------------------------------------------------------------
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("FLASK_ENV") == "production" and not app.config.get("SECRET_KEY"):
        raise ValueError("SECRET_KEY environment variable is required in production")

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
            REMEMBER_COOKIE_SECURE=True,
            REMEMBER_COOKIE_HTTPONLY=True,
        )

    configure_app_logging(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # SQLite fallback lives under instance/
    # ------------------------------------------------------------------------------------------------------------------------
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        os.makedirs(app.instance_path, exist_ok=True)

    init_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # Flask-Login user_loader
    # ------------------------------------------------------------------------------------------------------------------------
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @app.route("/healthz")
    def healthz():
        return {"status": "ok", "timestamp": utcnow().isoformat()}, 200

    app.logger.info(f"Application created ({app.config.get('FLASK_ENV')})")
    return app


# ------------------------------------------------------------------------------------------------------------------------
# Register blueprints
# -----------------------------------------------------------------------------------------------------------------------
def register_blueprints(app):
    from blueprints.auth import bp as auth_bp
    from blueprints.profile import bp as profile_bp
    from blueprints.investments import bp as investments_bp
    from blueprints.withdrawals import bp as withdrawals_bp
    from blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(investments_bp)
    app.register_blueprint(withdrawals_bp)
    app.register_blueprint(admin_bp)


# ------------------------------------------------------------------------------------------------------------------------
# JSON error handlers
# ------------------------------------------------------------------------------------------------------------------------
def register_error_handlers(app):

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        level = logging.WARNING if error.status_code in (401, 403) else logging.INFO
        app.logger.log(level, f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.name.lower().replace(" ", "_"), "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


# ------------------------------------------------------------------------------------------------------------------------
# CLI commands
# ------------------------------------------------------------------------------------------------------------------------
def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create all tables from the models.

        This is the schema path for a fresh database. Flask-Migrate is wired in,
        so `flask db init` and `flask db migrate` can start a migration history
        from these models once a deployment needs one.
        """
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("sweep-expired")
    def sweep_expired():
        """Complete every active investment past its end date (cron entry point)."""
        result = sweep_expired_investments()
        click.echo(f"Scanned {result.scanned}, completed {result.completed}.")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote an existing account to admin."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise click.ClickException(f"No account with email {email}")
        with atomic():
            user.role = Role.ADMIN.value
        app.logger.info(f"Account {user.id} promoted to admin")
        click.echo(f"User (id={user.id}, email={user.email}) is now admin.")
