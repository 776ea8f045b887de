"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB / MySQL ───────────────────────────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social_network"
    # Full SQLAlchemy URL; when set it wins over the tidb_* fields
    # (e.g. sqlite+aiosqlite:///./dev.db for local runs).
    database_url: Optional[str] = None

    @property
    def tidb_url(self) -> str:
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.tidb_url

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_days: int = Field(1, ge=1, le=7)
    bcrypt_rounds: int = 10
    username_change_interval_days: int = 30

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "media"
    minio_use_ssl: bool = False
    # Base used to build durable object URLs, e.g. https://cdn.example.com
    minio_public_url: Optional[str] = None
    upload_max_bytes: int = 5 * 1024 * 1024   # 5 MB

    # ── Push notifications (OneSignal-compatible) ──────────────────────────
    onesignal_app_id: Optional[str] = None
    onesignal_api_key: str = ""
    onesignal_url: str = "https://onesignal.com/api/v1/notifications"
    push_timeout_seconds: float = 5.0

    # ── HTTP ───────────────────────────────────────────────────────────────
    cors_origins: list[str] = ["*"]
    feed_page_size: int = 20
    notifications_list_limit: int = 50

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "social-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
