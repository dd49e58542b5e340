"""
Tests for configuration loading.
"""

import pytest

from agendaflow.config import AppConfig, HttpConfig, SchedulingConfig, get_default_config_path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        """An empty config falls back to the documented defaults."""
        config = AppConfig()

        assert config.timezone == "America/Sao_Paulo"
        assert config.scheduling.horizon_days == 14
        assert config.scheduling.granularity_minutes == 30
        assert config.http == HttpConfig(timeout_seconds=30, max_retries=3, backoff_seconds=1.0)
        assert config.reviewer_roles == {}

    def test_load_from_yaml(self, tmp_path):
        """Test loading a complete YAML file."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "api_base_url: https://api.example.com/api\n"
            "company_id: acme\n"
            "access_token: tok\n"
            "timezone: America/Manaus\n"
            "scheduling:\n"
            "  horizon_days: 7\n"
            "  granularity_minutes: 60\n"
            "http:\n"
            "  max_retries: 1\n"
            "reviewer_roles:\n"
            "  day_off: [master, lider]\n",
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(config_path)

        assert config.timezone == "America/Manaus"
        assert config.scheduling == SchedulingConfig(horizon_days=7, granularity_minutes=60)
        assert config.http.max_retries == 1
        assert config.http.timeout_seconds == 30
        assert config.reviewer_roles == {"DAY_OFF": ["MASTER", "LIDER"]}

        tenant = config.tenant()
        assert tenant.company_id == "acme"
        assert tenant.access_token == "tok"

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="config.example.yaml"):
            AppConfig.load_from_yaml(tmp_path / "config.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML is reported as ValueError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("company_id: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(config_path)

    def test_root_must_be_mapping(self, tmp_path):
        """A YAML list at the root is refused."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- acme\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(config_path)

    def test_unknown_timezone(self):
        """The tenant zone must exist."""
        with pytest.raises(ValueError, match="Unknown timezone"):
            AppConfig(timezone="America/Atlantis")

    @pytest.mark.parametrize(
        "roles, message",
        [
            ({"VACATION": ["MASTER"]}, "Unknown request kind"),
            ({"DAY_OFF": ["CEO"]}, "Unknown role"),
            ({"DAY_OFF": []}, "cannot be empty"),
        ],
    )
    def test_invalid_reviewer_roles(self, roles, message):
        """Reviewer overrides must name known kinds and roles."""
        with pytest.raises(ValueError, match=message):
            AppConfig(reviewer_roles=roles)


class TestSectionValidation:
    """Tests for nested sections."""

    @pytest.mark.parametrize("value", [0, -15, 1441])
    def test_granularity_bounds(self, value):
        """Granularity must be positive and fit in a day."""
        with pytest.raises(ValueError, match="granularity_minutes"):
            SchedulingConfig(granularity_minutes=value)

    def test_negative_horizon(self):
        """The horizon cannot be negative."""
        with pytest.raises(ValueError, match="horizon_days"):
            SchedulingConfig(horizon_days=-1)

    def test_http_bounds(self):
        """Timeouts must be positive and retries not negative."""
        with pytest.raises(ValueError):
            HttpConfig(timeout_seconds=0)
        with pytest.raises(ValueError):
            HttpConfig(max_retries=-1)


def test_default_config_path_prefers_working_directory(tmp_path, monkeypatch):
    """config.yaml in the working directory wins."""
    (tmp_path / "config.yaml").write_text("{}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert get_default_config_path() == tmp_path / "config.yaml"
