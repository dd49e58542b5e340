"""
Tests for the command line interface.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from agendaflow import __version__
from agendaflow.cli.app import _load_config, app

runner = CliRunner()

MOCK_DATA = {
    "availability": {"weekdays": {"active": True, "start": "08:00", "end": "10:00"}},
    "requests": [
        {
            "id": "a1",
            "kind": "APPOINTMENT",
            "requesterId": "u1",
            "companyId": "acme",
            "date": "2099-01-05",
            "time": "09:00",
            "status": "PENDENTE",
            "createdAt": "2026-10-12T10:00:00Z",
        },
        {
            "id": "d1",
            "kind": "DAY_OFF",
            "requesterId": "u2",
            "companyId": "acme",
            "date": "2099-01-06",
            "status": "APROVADO",
            "createdAt": "2026-10-12T10:00:00Z",
            "updatedAt": "2026-10-13T10:00:00Z",
        },
    ],
}


@pytest.fixture
def config_file(tmp_path):
    data_file = tmp_path / "mock.json"
    data_file.write_text(json.dumps(MOCK_DATA), encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "company_id: acme\n"
        f"mock_data_file: {data_file}\n",
        encoding="utf-8",
    )
    return str(config_path)


class TestCommands:
    """Tests for CLI commands against the mock backend."""

    def test_version(self):
        """Test the version command."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_slots(self, config_file):
        """Weekday mornings produce bookable slots."""
        result = runner.invoke(app, ["slots", "--mock", "--config", config_file, "--days", "7"])

        assert result.exit_code == 0
        assert "08:00" in result.output
        assert "09:30" in result.output

    def test_availability(self, config_file):
        """The normalized week is shown as a table."""
        result = runner.invoke(app, ["availability", "--mock", "--config", config_file])

        assert result.exit_code == 0
        assert "Segunda-feira" in result.output
        assert "08:00 - 10:00" in result.output

    def test_requests_filtered(self, config_file):
        """Listing by kind shows only that kind."""
        result = runner.invoke(app, ["requests", "--mock", "--config", config_file, "--kind", "day_off"])

        assert result.exit_code == 0
        assert "d1" in result.output
        assert "a1" not in result.output

    def test_submit(self, config_file):
        """A valid submission is echoed back."""
        result = runner.invoke(
            app,
            ["submit", "DAY_OFF", "2099-02-01", "--requester", "u3", "-f", "reason=Consulta",
             "--mock", "--config", config_file],
        )

        assert result.exit_code == 0
        assert "Solicitação enviada" in result.output

    def test_review_approves(self, config_file):
        """An HR reviewer of the same company approves an appointment."""
        result = runner.invoke(
            app,
            ["review", "a1", "APPROVED", "--actor-id", "rh-1", "--role", "rh",
             "--mock", "--config", config_file],
        )

        assert result.exit_code == 0
        assert "Decisão registrada" in result.output
        assert "APPROVED" in result.output


class TestErrors:
    """Tests for error reporting."""

    def test_past_date_fails(self, config_file):
        """Past dates exit with an explicit error."""
        result = runner.invoke(app, ["submit", "DAY_OFF", "2020-01-01", "--mock", "--config", config_file])

        assert result.exit_code == 1
        assert "Erro" in result.output

    def test_invalid_transition_fails(self, config_file):
        """Reviewing a decided request exits with an error."""
        result = runner.invoke(
            app,
            ["review", "d1", "REJECTED", "--actor-id", "m1", "--role", "MASTER",
             "-f", "note=x", "--mock", "--config", config_file],
        )

        assert result.exit_code == 1
        assert "Erro" in result.output

    def test_unauthorized_reviewer_fails(self, config_file):
        """Leaders cannot approve appointments."""
        result = runner.invoke(
            app,
            ["review", "a1", "APPROVED", "--actor-id", "l1", "--role", "LIDER",
             "--mock", "--config", config_file],
        )

        assert result.exit_code == 1
        assert "LIDER" in result.output

    def test_unknown_kind_fails(self, config_file):
        """Unknown kinds list the valid choices."""
        result = runner.invoke(app, ["requests", "--mock", "--config", config_file, "--kind", "VACATION"])

        assert result.exit_code == 1
        assert "DAY_OFF" in result.output

    def test_missing_config_fails(self, tmp_path):
        """Without --mock a config file is required."""
        result = runner.invoke(app, ["requests", "--config", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestMockWithoutConfig:
    """Tests for --mock runs with no config file at all."""

    @pytest.fixture(autouse=True)
    def empty_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

    def test_review_sample_request(self):
        """An HR reviewer acts as the tenant of the bundled sample data."""
        result = runner.invoke(app, ["review", "mock-2", "APPROVED", "--actor-id", "rh-1", "--role", "RH", "--mock"])

        assert result.exit_code == 0, result.output
        assert "Decisão registrada" in result.output

    def test_config_defaults_to_sample_company(self):
        """Without a config file the sample tenant is used."""
        assert _load_config(None, mock=True).company_id == "mock-company"

    def test_configured_company_wins(self, config_file):
        """A configured company is kept in mock mode."""
        assert _load_config(Path(config_file), mock=True).company_id == "acme"
