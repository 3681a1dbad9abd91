# logger.py - Centralized logging configuration
import os
import logging
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"


def setup_logger(name, log_file=None, level=logging.INFO, log_dir="logs"):
    """Set up a logger with file rotation"""
    os.makedirs(log_dir, exist_ok=True)

    if not log_file:
        log_file = os.path.join(log_dir, f"{name}.log")

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        logger.setLevel(level)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

        # Console handler for development
        if os.environ.get("FLASK_ENV") != "production":
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(logging.Formatter(
                "%(name)s - %(levelname)s - %(message)s"
            ))
            logger.addHandler(console_handler)

    return logger


def configure_app_logging(app):
    """Attach the rotating handlers to app.logger and the ledger package logger."""
    log_dir = app.config.get("LOG_DIR", "logs")
    level = logging.DEBUG if app.debug else logging.INFO

    # app.logger is logging.getLogger(app.name); swap Flask's stderr handler for ours
    app.logger.removeHandler(default_handler)
    setup_logger(app.logger.name, level=level, log_dir=log_dir)
    app.logger.setLevel(level)
    app.logger.propagate = False  # Prevent duplicate logs

    # ledger.* and blueprints.* module loggers propagate here
    setup_logger("ledger", level=level, log_dir=log_dir)
    setup_logger("blueprints", level=level, log_dir=log_dir)
    return app
