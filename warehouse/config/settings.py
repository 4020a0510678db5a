"""
CRM/ERP Medallion Warehouse
Centralized Configuration Management

Pydantic settings with environment variable support for the lake paths,
pipeline behaviour and logging.
"""

from datetime import date
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataLakeSettings(BaseSettings):
    """Lake storage layout for the bronze, silver and gold layers"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Bronze zone (raw CSV extracts)")
    output_path: str = Field(default="./data/warehouse", description="Published silver/gold layers")
    crm_dir: str = Field(default="source_crm", description="CRM extract sub-directory")
    erp_dir: str = Field(default="source_erp", description="ERP extract sub-directory")


class PipelineSettings(BaseSettings):
    """Batch load behaviour"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    as_of_date: Optional[date] = Field(
        default=None,
        description="Birth dates after this date are nulled (defaults to today)",
    )
    strict_validity_windows: bool = Field(
        default=True,
        description="Abort when two product versions share a start date",
    )
    run_quality_gate: bool = Field(default=True, description="Run quality suites after a load")
    fail_on_quality_errors: bool = Field(
        default=False,
        description="Treat a failed quality suite as a failed run",
    )

    def resolve_as_of(self) -> date:
        return self.as_of_date or date.today()


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="crm-erp-warehouse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    # Subsystem configurations
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
