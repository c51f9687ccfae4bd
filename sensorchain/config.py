"""Application configuration"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Sensor log (the forensic store)
    LOG_PATH: str = "./data/sensor_log.csv"
    FSYNC_ON_WRITE: bool = True

    # Trust anchor database - keep on a different medium than LOG_PATH
    ANCHOR_DATABASE_URL: str = "sqlite:///./data/anchor.db"

    # Authentication
    ADMIN_API_KEY: str = "admin-secret-key-change-in-production"

    # Sampling
    SAMPLE_INTERVAL_SECONDS: float = 5.0  # 0 disables the background sampler
    SENSOR_BASELINE: float = 20.0
    SENSOR_JITTER: float = 0.5
    SENSOR_MIN: float = -40.0
    SENSOR_MAX: float = 85.0

    # Demonstration attack endpoints - never enable on a real deployment
    ATTACKS_ENABLED: bool = False

    # Webhooks (fire-and-forget notifications for resets and detected tampering)
    WEBHOOK_URL: Optional[str] = None          # Any HTTPS URL; Slack incoming webhooks auto-detected
    WEBHOOK_SECRET: Optional[str] = None       # If set, signs body with HMAC-SHA256

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: List[str] = ["100/minute", "1000/hour"]
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # Use redis:// for production

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def sampling_enabled(self) -> bool:
        return self.SAMPLE_INTERVAL_SECONDS > 0


settings = Settings()
