import secrets
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FEED_URL = "https://www.dtpm.cl/descarga.php?file=gtfs/gtfs.zip"


class GTFSSettings(BaseSettings):
    GTFS_FEED_URL: str = DEFAULT_FEED_URL
    GTFS_FALLBACK_URL: str = DEFAULT_FEED_URL
    GTFS_AUTO_SYNC: bool = False
    GTFS_STALENESS_DAYS: int = 30
    GTFS_SYNC_CHECK_INTERVAL_HOURS: int = 24 * 30  # 30 days
    GTFS_SYNC_DEADLINE_MINUTES: int = 30
    GTFS_DOWNLOAD_TIMEOUT: float = 120.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class GraphHopperSettings(BaseSettings):
    GRAPHHOPPER_URL: str = "http://localhost:8989"
    # Comma separated, searched in order
    GRAPHHOPPER_JAR_PATHS: str = (
        "./graphhopper-web-11.0.jar,"
        "./bin/graphhopper-web-11.0.jar,"
        "./graphhopper/graphhopper-web-11.0.jar,"
        "./lib/graphhopper-web-11.0.jar"
    )
    GRAPHHOPPER_CONFIG_PATH: str = "./graphhopper-config.yml"
    GRAPHHOPPER_GRAPH_CACHE: str = "./graph-cache"
    GRAPHHOPPER_JAVA_BIN: str = "java"
    GRAPHHOPPER_JAVA_OPTS: str = "-Xmx8g -Xms2g"
    GRAPHHOPPER_HEALTH_ATTEMPTS: int = 180
    GRAPHHOPPER_HEALTH_INTERVAL: float = 1.0
    GRAPHHOPPER_AUTOSTART: bool = True
    GRAPHHOPPER_LOG_FILE: str = "./graphhopper.log"
    GRAPHHOPPER_FOOT_TIMEOUT: float = 10.0
    GRAPHHOPPER_PT_TIMEOUT: float = 30.0
    GRAPHHOPPER_LOCALE: str = "es"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def jar_paths(self) -> List[str]:
        return [p.strip() for p in self.GRAPHHOPPER_JAR_PATHS.split(",") if p.strip()]


class CelerySettings(BaseSettings):
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_TIME_LIMIT: int = 60 * 35  # sync deadline plus margin
    CELERY_TASK_SOFT_TIME_LIMIT: int = 60 * 32

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class Settings(BaseSettings):
    # Database - No default password for security
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""  # Required via .env
    POSTGRES_DB: str = "wayfind_dev"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # Full URL override (sqlite for tests, managed databases)
    DATABASE_URL_OVERRIDE: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Admin token for /admin endpoints
    ADMIN_TOKEN: str = ""

    gtfs: GTFSSettings = GTFSSettings()
    graphhopper: GraphHopperSettings = GraphHopperSettings()
    celery: CelerySettings = CelerySettings()

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def validate_production_settings(self) -> None:
        """Validate critical settings for production environment.

        Raises ValueError if production settings are invalid.
        """
        errors = []

        if self.is_production:
            if not self.DATABASE_URL_OVERRIDE and (
                not self.POSTGRES_PASSWORD or self.POSTGRES_PASSWORD == "postgres"
            ):
                errors.append(
                    "POSTGRES_PASSWORD must be set to a secure value in production"
                )

            if not self.ADMIN_TOKEN or len(self.ADMIN_TOKEN) < 32:
                errors.append(
                    "ADMIN_TOKEN must be set to a secure value (min 32 chars) in production"
                )

            if not self.gtfs.GTFS_FEED_URL:
                errors.append("GTFS_FEED_URL must be set in production")

            if self.DEBUG:
                errors.append("DEBUG must be False in production")

        if errors:
            raise ValueError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    def validate_development_settings(self) -> None:
        """Set sensible defaults for development if not configured."""
        if not self.POSTGRES_PASSWORD:
            self.POSTGRES_PASSWORD = "postgres"

        if not self.ADMIN_TOKEN:
            self.ADMIN_TOKEN = secrets.token_urlsafe(32)
            print(f"WARNING: Using auto-generated ADMIN_TOKEN for development: {self.ADMIN_TOKEN}")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create settings instance
settings = Settings()

# Validate based on environment
if settings.is_production:
    settings.validate_production_settings()
else:
    settings.validate_development_settings()
