"""
Application configuration settings.
"""
from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List
import logging


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # CSV source directory (relative to project root)
    ENROLLMENT_CSV_DIR: str = "data/api_data_aadhar_enrolment"

    # Remote cache - leave empty to run on the in-process fallback only
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_CONNECT_TIMEOUT: float = 5.0
    REDIS_RETRY_SECONDS: float = 30.0  # Skip remote tier this long after a failure

    # Cache lifetimes
    CACHE_TTL_SECONDS: int = 600  # 10 minutes
    MEMORY_CACHE_SECONDS: int = 600
    CACHE_SWEEP_INTERVAL: int = 100  # Sweep local fallback every N sets

    # Alerting
    ALERT_ABSOLUTE_FLOOR: float = 100.0  # Daily count below this is a system failure
    ANOMALY_Z_THRESHOLD: float = 2.5

    # API settings
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Aadhaar Pulse Alerts"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    PRELOAD_ON_STARTUP: bool = False

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

    @property
    def base_dir(self) -> Path:
        """Get base directory of the project."""
        return Path(__file__).parent.parent

    @property
    def csv_dir(self) -> Path:
        """Resolve the enrollment CSV directory against the project root."""
        path = Path(self.ENROLLMENT_CSV_DIR)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    class Config:
        env_file = ".env"
        extra = "allow"


# Global settings instance
settings = Settings()


def configure_logging(level: str = None):
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
