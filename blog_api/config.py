from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Blog Platform API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./blog.db"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # View tracking / analytics settings
    analytics_tracking_timeout_seconds: float = 5.0
    analytics_breakdown_limit: int = 10
    geo_country_header: str = "CF-IPCountry"
    geo_city_header: str = "X-Geo-City"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
