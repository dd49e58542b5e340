"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .adapters.backend_client import TenantContext
from .domain.models import RequestKind, Role


class SchedulingConfig(BaseModel):
    """Slot expansion settings."""
    horizon_days: int = 14
    granularity_minutes: int = 30

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, value: int) -> int:
        """Ensure the booking horizon is not negative."""
        if value < 0:
            raise ValueError("horizon_days cannot be negative")
        return value

    @field_validator("granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        """Ensure slots are at least one minute apart and fit in a day."""
        if not 0 < value <= 24 * 60:
            raise ValueError(f"granularity_minutes must be between 1 and 1440, got {value}")
        return value


class HttpConfig(BaseModel):
    """Timeout and retry settings for the backend client."""
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_seconds: float = 1.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries cannot be negative")
        return value

    @field_validator("backoff_seconds")
    @classmethod
    def validate_backoff(cls, value: float) -> float:
        if value < 0:
            raise ValueError("backoff_seconds cannot be negative")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    api_base_url: str = "http://localhost:3000/api"
    company_id: Optional[str] = None
    access_token: Optional[str] = None
    timezone: str = "America/Sao_Paulo"
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    reviewer_roles: Dict[str, List[str]] = Field(default_factory=dict)
    mock_data_file: Optional[Path] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the tenant zone is a known IANA timezone."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("reviewer_roles")
    @classmethod
    def validate_reviewer_roles(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Ensure overrides name known request kinds and roles."""
        kinds = {kind.value for kind in RequestKind}
        roles = {role.value for role in Role}
        normalized: Dict[str, List[str]] = {}

        for kind_name, role_names in value.items():
            kind_key = str(kind_name).upper()
            if kind_key not in kinds:
                raise ValueError(f"Unknown request kind in reviewer_roles: {kind_name}")

            role_keys = [str(role).upper() for role in role_names]
            unknown = sorted(set(role_keys) - roles)
            if unknown:
                raise ValueError(f"Unknown role(s) for {kind_key}: {', '.join(unknown)}")
            if not role_keys:
                raise ValueError(f"reviewer_roles for {kind_key} cannot be empty")

            normalized[kind_key] = role_keys
        return normalized

    def tenant(self) -> TenantContext:
        """Get the tenant context sent with every backend call."""
        return TenantContext(company_id=self.company_id, access_token=self.access_token)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
