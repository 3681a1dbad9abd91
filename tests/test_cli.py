from sqlalchemy import inspect

from extensions import db


def test_init_db_creates_tables(app):
    db.drop_all()
    result = app.test_cli_runner().invoke(args=["init-db"])

    assert result.exit_code == 0
    assert "Database tables created." in result.output
    assert "users" in inspect(db.engine).get_table_names()


def test_init_db_help_names_it_the_schema_path(app):
    result = app.test_cli_runner().invoke(args=["init-db", "--help"])
    assert result.exit_code == 0
    assert "Create all tables from the models." in result.output


def test_make_admin_unknown_email(app):
    result = app.test_cli_runner().invoke(args=["make-admin", "nobody@example.com"])
    assert result.exit_code != 0
    assert "No account with email" in result.output
