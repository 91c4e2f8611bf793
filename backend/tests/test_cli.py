"""Tests for Metadoc CLI commands."""

import shutil

import pytest
from click.testing import CliRunner

from conftest import METADATA_DIR, REPO_ROOT
from metadoc.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run commands from a scratch directory with its own SQLite database."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("METADOC_METADATA_PATH", raising=False)
    monkeypatch.setenv("METADOC_DB_PATH", str(tmp_path / "data" / "cli.db"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_yaml(directory, filename, body):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(body)
    return path


class TestDoctypeValidate:
    def test_repo_metadata_is_valid(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "validate", str(METADATA_DIR)])
        assert result.exit_code == 0, result.output
        assert "All DocType definitions are valid" in result.output
        assert "Order Line" in result.output

    def test_schema_error(self, runner, workspace):
        path = write_yaml(
            workspace / "bad",
            "thing.yaml",
            "doctype: Thing\nfields:\n  - name: amount\n    type: Money\n",
        )
        result = runner.invoke(cli, ["doctype", "validate", str(path)])
        assert result.exit_code == 1
        assert "fields[0]/type" in result.output

    def test_missing_child_doc_type(self, runner, workspace):
        write_yaml(
            workspace / "metadata",
            "order.yaml",
            "doctype: Order\nfields:\n  - name: lines\n    type: Table\n    options: Order Line\n",
        )
        result = runner.invoke(cli, ["doctype", "validate"])
        assert result.exit_code == 1
        assert "not a child DocType" in result.output

    def test_reserved_field(self, runner, workspace):
        write_yaml(
            workspace / "metadata",
            "thing.yaml",
            "doctype: Thing\nfields:\n  - name: docstatus\n    type: Int\n",
        )
        result = runner.invoke(cli, ["doctype", "validate"])
        assert result.exit_code == 1
        assert "managed by the engine" in result.output

    def test_missing_directory(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "validate"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestDoctypeSync:
    def test_sync_list_show(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "sync", str(METADATA_DIR)])
        assert result.exit_code == 0, result.output
        assert "Synced 4 DocType(s)" in result.output

        result = runner.invoke(cli, ["doctype", "list"])
        assert result.exit_code == 0
        assert "Order Line (Selling, 3 fields) [child]" in result.output
        assert "Invoice (Accounts, 4 fields)" in result.output

        result = runner.invoke(cli, ["doctype", "show", "Invoice"])
        assert result.exit_code == 0
        assert "name: Invoice" in result.output
        assert "role: Accounts Manager" in result.output

    def test_sync_single_file(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "sync", str(METADATA_DIR / "customer.yaml")])
        assert result.exit_code == 0, result.output
        assert "Customer (4 fields)" in result.output

    def test_sync_reports_failures(self, runner, workspace):
        write_yaml(
            workspace / "metadata",
            "thing.yaml",
            "doctype: Thing\nfields:\n  - name: lines\n    type: Table\n",
        )
        result = runner.invoke(cli, ["doctype", "sync"])
        assert result.exit_code == 1
        assert "Thing" in result.output
        assert "1 DocType(s) failed to sync" in result.output

    def test_show_unknown(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "show", "Nope"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_list_empty(self, runner, workspace):
        result = runner.invoke(cli, ["doctype", "list"])
        assert result.exit_code == 0
        assert "No DocTypes registered" in result.output


class TestSchemaHeal:
    def test_heal_after_sync(self, runner, workspace):
        runner.invoke(cli, ["doctype", "sync", str(METADATA_DIR)])
        result = runner.invoke(cli, ["schema", "heal"])
        assert result.exit_code == 0, result.output
        assert "Checked 4 DocType(s)" in result.output


class TestTenant:
    def test_create_and_list(self, runner, workspace):
        result = runner.invoke(cli, ["tenant", "create", "acme", "--name", "Acme Corp"])
        assert result.exit_code == 0, result.output
        runner.invoke(cli, ["tenant", "create", "globex"])

        result = runner.invoke(cli, ["tenant", "list"])
        assert result.output.split() == ["acme", "globex"]

    def test_duplicate(self, runner, workspace):
        runner.invoke(cli, ["tenant", "create", "acme"])
        result = runner.invoke(cli, ["tenant", "create", "acme"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_list_empty(self, runner, workspace):
        result = runner.invoke(cli, ["tenant", "list"])
        assert "No tenants" in result.output


class TestMigrate:
    @pytest.fixture
    def migrations(self, workspace):
        shutil.copytree(REPO_ROOT / "migrations" / "versions", workspace / "migrations" / "versions")
        return workspace / "migrations"

    def test_upgrade_status_downgrade(self, runner, migrations):
        result = runner.invoke(cli, ["migrate", "upgrade"])
        assert result.exit_code == 0, result.output
        assert "Migrations applied successfully" in result.output

        result = runner.invoke(cli, ["migrate", "status"])
        assert "0001" in result.output
        assert "applied" in result.output

        result = runner.invoke(cli, ["migrate", "downgrade", "--to", "base"])
        assert result.exit_code == 0, result.output
        assert "pending" in result.output

    def test_stamp(self, runner, migrations):
        result = runner.invoke(cli, ["migrate", "stamp"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ["migrate", "status"])
        assert "applied" in result.output

    def test_no_migrations(self, runner, workspace):
        result = runner.invoke(cli, ["migrate", "status"])
        assert "No migrations found" in result.output


class TestLogLevel:
    def test_option_accepted(self, runner, workspace):
        result = runner.invoke(cli, ["--log-level", "debug", "tenant", "list"])
        assert result.exit_code == 0
