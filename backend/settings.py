from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "School Locator API"
    version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins, e.g. "https://app.example.com,https://admin.example.com"
    cors_origins: str = "*"
    schools_db_path: str = "data/schools.db"  # Path relative to backend root, or absolute

    # /api/schoolsNearby radius when the caller omits ?radius=
    default_radius_km: float = 50.0
    # slowapi limit string applied per client IP
    rate_limit: str = "100/15minutes"


def get_settings() -> Settings:
    return Settings()
