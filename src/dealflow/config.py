"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables prefixed with DEALFLOW_."""

    # Database
    database_url: str = ""
    db_connect_timeout: int = 10

    # Import defaults
    default_duplicate_strategy: str = "skip"
    auto_create_related_entities: bool = True
    max_file_bytes: int = 5 * 1024 * 1024

    # Reports
    report_dir: str = "reports"

    model_config = {"env_file": ".env", "env_prefix": "DEALFLOW_"}


def get_settings() -> Settings:
    """Return a Settings instance."""
    return Settings()
