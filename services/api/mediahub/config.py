"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "mediahub"
    # Full SQLAlchemy async URL; wins over the tidb_* fields when set
    # (e.g. sqlite+aiosqlite:///./mediahub.db for local runs and tests).
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

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    media_release_retry_key: str = "media-release:retry"

    # ── Kafka ──────────────────────────────────────────────────────────────
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_media_release: str = "media-release"
    kafka_consumer_group: str = "media-release-worker"

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "media"
    minio_use_ssl: bool = False

    # ── Media release retry policy ─────────────────────────────────────────
    media_release_attempts: int = 5
    media_release_backoff_min: float = 1.0      # seconds
    media_release_backoff_max: float = 30.0     # seconds
    media_release_requeue_delay: int = 300      # seconds before a retry-set entry is due
    media_release_poll_interval: float = 15.0   # seconds between retry-set sweeps
    media_release_max_age: int = 7 * 86400      # give up on a handle after a week

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_ttl: int = 86400               # seconds
    session_cookie_name: str = "accessToken"
    session_cookie_secure: bool = False
    bcrypt_rounds: int = 12

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "mediahub-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
