"""
People Matching Engine - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/people_matching.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Planning Center People (token is issued elsewhere, never refreshed here)
    PCO_API_BASE_URL: str = Field(default="https://api.planningcenteronline.com/people/v2")
    PCO_ACCESS_TOKEN: str = Field(default="")
    PCO_LIST_ID: str = Field(default="")
    PCO_PER_PAGE: int = Field(default=100)
    PCO_MAX_PAGES: int = Field(default=100)
    PCO_REQUEST_TIMEOUT: float = Field(default=30.0)

    # Seconds a fetched directory is reused before hitting the API again
    DIRECTORY_CACHE_TTL: int = Field(default=900)

    # Matching
    NICKNAME_DATASET_PATH: str = Field(default=str(PROJECT_ROOT / "data" / "nicknames.csv"))
    MATCH_WORKERS: int = Field(default=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
