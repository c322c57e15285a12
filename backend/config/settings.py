from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Loads all environment variables into a single, accessible object."""
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    CONGRESS_API_KEY: Optional[str] = None
    LEGISCAN_API_KEY: Optional[str] = None

    CONGRESS_API_BASE_URL: str = "https://api.congress.gov/v3"
    LEGISCAN_API_BASE_URL: str = "https://api.legiscan.com"
    LEGISCAN_STATE: str = "CA"
    CURRENT_CONGRESS: int = 119

    FEDERAL_QUOTA_LIMIT: int = 5000
    FEDERAL_QUOTA_PERIOD_SECONDS: Optional[float] = 3600.0
    STATE_QUOTA_LIMIT: int = 30000
    # None means the quota resets on calendar-month boundaries (UTC).
    STATE_QUOTA_PERIOD_SECONDS: Optional[float] = None

    CACHE_TTL_SECONDS: float = 300.0

    REDIS_URL: Optional[str] = None
    REPRESENTATIVE_MAP_PATH: Optional[str] = None

settings = Settings()
