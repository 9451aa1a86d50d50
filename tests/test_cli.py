"""Tests for the Typer CLI."""

import json

import pytest
from typer.testing import CliRunner

from tripsettle.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the CLI at a temporary database."""
    monkeypatch.setenv("TRIPSETTLE_DATABASE_PATH", str(tmp_path / "cli.db"))


@pytest.fixture
def trip_file(tmp_path):
    path = tmp_path / "trip.json"
    path.write_text(
        json.dumps(
            {
                "id": "trip-1",
                "name": "Lisbon",
                "participants": [
                    {"id": "A", "name": "Alice"},
                    {"id": "B", "name": "Bob"},
                    {"id": "C", "name": "Carol"},
                ],
                "expenses": [
                    {
                        "id": "e1",
                        "trip_id": "trip-1",
                        "payer_id": "A",
                        "currency": "USD",
                        "amount": "90.00",
                        "split": {"type": "equal", "participants": ["A", "B", "C"]},
                        "description": "Dinner",
                    },
                    {
                        "id": "e2",
                        "trip_id": "trip-1",
                        "payer_id": "B",
                        "currency": "USD",
                        "amount": "30.00",
                        "split": {"type": "equal", "participants": ["A", "B", "C"]},
                        "description": "Taxi",
                    },
                ],
            }
        )
    )
    return path


class TestSummary:
    def test_shows_balances_and_transfers(self, trip_file):
        result = runner.invoke(app, ["summary", str(trip_file)])

        assert result.exit_code == 0
        assert "Trip Lisbon" in result.output
        assert "Balances (USD)" in result.output
        assert "Transfers (USD)" in result.output

    def test_missing_trip_file(self, tmp_path):
        result = runner.invoke(app, ["summary", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestSettleCommands:
    def test_settle_with_yes(self, trip_file):
        result = runner.invoke(app, ["settle", str(trip_file), "B", "A", "--yes"])

        assert result.exit_code == 0
        assert "Marked B -> A (USD) as paid" in result.output

    def test_settle_unknown_pair(self, trip_file):
        result = runner.invoke(app, ["settle", str(trip_file), "A", "B", "--yes"])

        assert result.exit_code == 1
        assert "No current transfer" in result.output

    def test_settle_needs_both_ids(self, trip_file):
        result = runner.invoke(app, ["settle", str(trip_file), "B"])

        assert result.exit_code == 1

    def test_unsettle(self, trip_file):
        runner.invoke(app, ["settle", str(trip_file), "B", "A", "--yes"])

        result = runner.invoke(app, ["unsettle", str(trip_file), "B", "A"])

        assert result.exit_code == 0
        assert "B -> A is active again" in result.output


class TestExplainCommand:
    def test_explain(self, trip_file):
        result = runner.invoke(app, ["explain", str(trip_file), "B", "A"])

        assert result.exit_code == 0
        assert "Contributing Expenses" in result.output
        assert "Increases" in result.output


class TestValidateCommand:
    def test_all_valid(self, trip_file):
        result = runner.invoke(app, ["validate", str(trip_file)])

        assert result.exit_code == 0
        assert "All 2 expenses are valid" in result.output

    def test_invalid_expense(self, tmp_path):
        path = tmp_path / "trip.json"
        path.write_text(
            json.dumps(
                {
                    "id": "trip-2",
                    "participants": [{"id": "A", "name": "Alice"}],
                    "expenses": [
                        {
                            "id": "e1",
                            "trip_id": "trip-2",
                            "payer_id": "A",
                            "currency": "USD",
                            "amount": "0",
                            "split": {"type": "equal", "participants": ["A"]},
                        }
                    ],
                }
            )
        )

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Invalid Expenses" in result.output

    def test_does_not_open_database(self, trip_file, tmp_path):
        result = runner.invoke(app, ["validate", str(trip_file)])

        assert result.exit_code == 0
        assert not (tmp_path / "cli.db").exists()


class TestItemizeCommand:
    def test_itemize_receipt(self, tmp_path):
        path = tmp_path / "receipt.json"
        path.write_text(
            json.dumps(
                {
                    "currency": "USD",
                    "items": [
                        {"id": "pasta", "name": "Pasta", "unit_price": "10.00", "assigned_to": ["X"]},
                        {"id": "steak", "name": "Steak", "unit_price": "20.00", "assigned_to": ["Y"]},
                    ],
                    "extras": [{"id": "tax", "name": "Tax", "kind": "tax", "value": "10"}],
                }
            )
        )

        result = runner.invoke(app, ["itemize", str(path)])

        assert result.exit_code == 0
        assert "Receipt Split" in result.output
        assert "Totals match" in result.output

    def test_invalid_receipt(self, tmp_path):
        path = tmp_path / "receipt.json"
        path.write_text(json.dumps({"currency": "USD", "items": []}))

        result = runner.invoke(app, ["itemize", str(path)])

        assert result.exit_code == 1
        assert "at least one item" in result.output
