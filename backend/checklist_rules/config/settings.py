"""Engine Settings - Environment-driven configuration

Every key can be set as an environment variable with the RULES_ prefix
(e.g. RULES_MONGO_URI, RULES_WORKFLOW_EXECUTION_TIMEOUT_SECONDS) or in a
.env file next to the process.
"""
import logging
from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Rule engine settings"""

    model_config = SettingsConfigDict(
        env_prefix="RULES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Workflow store
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "checklist_rules"
    workflows_collection: str = "automation_workflows"
    executions_collection: str = "automation_executions"
    events_collection: str = "automation_events"
    analytics_max_update_attempts: int = Field(default=5, ge=1)

    # Workflow runs; 0 disables the overall deadline
    workflow_execution_timeout_seconds: float = Field(default=300.0, ge=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    scheduler_misfire_grace_seconds: int = Field(default=60, ge=1)

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    logs_path: str = "./logs"

    environment: str = "development"

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
