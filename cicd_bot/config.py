"""
Application configuration management.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis (log stream storage)
    redis_url: str = "redis://localhost:6379/0"
    log_ttl_seconds: int = 86400

    # GitHub
    github_host: str = "https://github.com"
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    # Git
    git_command: str = "git"

    # CI/CD generator
    jhipster_command: str = "jhipster"
    jhipster_timeout_seconds: int = 600

    # Working directories
    tmp_folder: str = "/tmp"

    # Application
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
