"""
Application settings using Pydantic.

Provides environment-based configuration loading with BROKERWATCH_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = "postgresql+psycopg://localhost/brokerwatch"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Debug
    debug: bool = False

    # Environment
    environment: str = "development"

    # Cache
    cache_backend: str = "memory"  # memory, redis
    cache_ttl_seconds: int = 60
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10

    # HTTP client settings
    http_timeout: float = 5.0
    http_max_retries: int = 2
    http_retry_backoff_factor: float = 0.5

    # RabbitMQ management API
    rabbitmq_host: str = "localhost"
    rabbitmq_mgmt_port: int = 15672
    rabbitmq_user: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_prometheus_url: str | None = None

    # Kafka
    kafka_rest_url: str = "http://kafka-rest:8082"
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_host: str = "localhost"
    kafka_prometheus_url: str | None = None
    kafka_admin_timeout: float = 5.0

    # Pulsar
    pulsar_enabled: bool = False
    pulsar_admin_url: str = "http://localhost:8080"
    pulsar_cluster: str = "standalone"

    # Pulsar "has measured signal" floors
    signal_min_throughput: float = 0.0
    signal_min_latency_ms: float = 0.0
    signal_min_memory_mb: float = 1.0

    # Comparison
    comparison_baseline: str = "rabbitmq"
    comparison_candidate: str = "pulsar"
    comparison_measured_only: bool = True

    # Retention
    retention_days: int = 7

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "BROKERWATCH_"

    @property
    def rabbitmq_mgmt_url(self) -> str:
        return f"http://{self.rabbitmq_host}:{self.rabbitmq_mgmt_port}"

    @property
    def rabbitmq_metrics_url(self) -> str:
        return self.rabbitmq_prometheus_url or f"http://{self.rabbitmq_host}:15692/metrics"

    @property
    def kafka_metrics_url(self) -> str:
        return self.kafka_prometheus_url or f"http://{self.kafka_host}:9308/metrics"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
