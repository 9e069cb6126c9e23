from uuid import uuid4

from typer.testing import CliRunner

from stockroom.cli import app

runner = CliRunner()


def test_init_db_and_seed() -> None:
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0, result.output
    assert "Database initialised" in result.output

    result = runner.invoke(app, ["seed"])
    assert result.exit_code == 0, result.output
    assert "Admin, Manager, Viewer" in result.output


def test_create_admin_and_list_users() -> None:
    email = f"ops-{uuid4().hex[:8]}@stockroom.io"

    result = runner.invoke(app, ["create-admin", email, "--password", "long-enough-1", "--name", "Ops"])
    assert result.exit_code == 0, result.output
    assert f"Created administrator {email}" in result.output

    again = runner.invoke(app, ["create-admin", email, "--password", "long-enough-1"])
    assert again.exit_code == 1
    assert "already exists" in again.output

    listing = runner.invoke(app, ["list-users"])
    assert listing.exit_code == 0
    assert f"{email} | Ops | role=Admin" in listing.output


def test_create_admin_rejects_short_password() -> None:
    result = runner.invoke(app, ["create-admin", "short@stockroom.io", "--password", "abc"])

    assert result.exit_code == 1
    assert "at least 8 characters" in result.output
