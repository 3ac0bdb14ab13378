"""Tests for the command-line interface."""
import json
import sys

import pandas as pd
import pytest
from unittest.mock import patch


@pytest.fixture
def cli(temp_db_path):
    """Run the CLI against the temporary database."""
    from finance_tracker import main as cli_main
    from finance_tracker.api.finance_service import FinanceService

    def run(*argv):
        with patch.object(cli_main, "FinanceService", lambda: FinanceService(db_path=temp_db_path)), \
                patch.object(sys, "argv", ["finance", *argv]):
            return cli_main.main()

    return run


@pytest.fixture
def seeded(temp_db_path):
    from finance_tracker.api.finance_service import FinanceService

    with FinanceService(db_path=temp_db_path) as service:
        ctx = service.store.get_all_contexts()[0]["id"]
        service.create_transaction({
            "context_id": ctx, "description": "Payroll", "date": "2024-01-18",
            "category": "Salary", "type": "Income", "amount": 3500, "account": "Checking"
        })
        service.store.add_budget(ctx, "Food", 200, "2024-01")
    return ctx


def test_no_command_prints_help(cli):
    assert cli() == 1


def test_contexts(cli, capsys):
    assert cli("contexts") == 0
    assert "Personal" in capsys.readouterr().out


def test_dashboard_unknown_context(cli, capsys):
    assert cli("dashboard", "999") == 1
    assert "does not exist" in capsys.readouterr().out


def test_dashboard(cli, seeded, capsys):
    assert cli("dashboard", str(seeded), "--month", "2024-01") == 0
    out = capsys.readouterr().out
    assert "$3,500.00" in out
    assert "Food" in out


def test_export_json_then_import(cli, seeded, tmp_path, capsys):
    out_file = tmp_path / "export.json"
    assert cli("export", str(seeded), "-o", str(out_file)) == 0
    assert json.loads(out_file.read_text())["summary"]["totalTransactions"] == 1

    assert cli("import", str(seeded), str(out_file)) == 0
    assert "transactions" in capsys.readouterr().out


def test_export_csv(cli, seeded, tmp_path):
    out_file = tmp_path / "transactions.csv"
    assert cli("export", str(seeded), "--format", "csv", "-o", str(out_file)) == 0

    df = pd.read_csv(out_file)
    assert list(df["description"]) == ["Payroll"]
    assert df["amount"].sum() == 3500


def test_import_missing_file(cli, seeded, tmp_path):
    assert cli("import", str(seeded), str(tmp_path / "nope.json")) == 1


def test_backup(cli, tmp_path):
    assert cli("backup", "--dir", str(tmp_path / "backups")) == 0
    assert len(list((tmp_path / "backups").glob("finance-backup-*.db"))) == 1
