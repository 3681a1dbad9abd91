# ==========================================================================================================
# -------------- Configuration file for the Tradevest Flask application ------------------------------------
# ==========================================================================================================
import os
from decimal import Decimal
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _decimal_env(name, default):
    return Decimal(os.getenv(name, default))


class Config:

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")
    TESTING = False

    # create_app() refuses to start in production without it
    SECRET_KEY = os.getenv("SECRET_KEY")

    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'tradevest.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = _database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    if not _database_url.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_recycle": 300,
        })

    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")
    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # --------------------------------------------------------------------------------------
    # Investment / payout rules
    # --------------------------------------------------------------------------------------
    MIN_INVESTMENT = _decimal_env("MIN_INVESTMENT", "2500")
    MAX_INVESTMENT = _decimal_env("MAX_INVESTMENT", "10000000")
    INVESTMENT_TERM_DAYS = int(os.getenv("INVESTMENT_TERM_DAYS", "7"))

    # "percentage" -> principal * DAILY_PROFIT_RATE, "flat" -> FLAT_DAILY_PROFIT
    PROFIT_MODEL = os.getenv("PROFIT_MODEL", "percentage")
    DAILY_PROFIT_RATE = _decimal_env("DAILY_PROFIT_RATE", "0.10")
    FLAT_DAILY_PROFIT = _decimal_env("FLAT_DAILY_PROFIT", "250")
    DAILY_BONUS_AMOUNT = _decimal_env("DAILY_BONUS_AMOUNT", "20")

    REFERRAL_BONUS_RATE = _decimal_env("REFERRAL_BONUS_RATE", "0.10")
    MIN_WITHDRAWAL = _decimal_env("MIN_WITHDRAWAL", "100")

    # Calendar day used for "already claimed today"
    LEDGER_TIMEZONE = os.getenv("LEDGER_TIMEZONE", "Africa/Lagos")


class TestConfig(Config):
    TESTING = True
    DEBUG = False
    FLASK_ENV = "testing"
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_DIR = os.path.join(basedir, "logs", "test")
