import os
from urllib.parse import quote
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass(frozen=True)
class RabbitSettings:
    user: str = "shopfinity"
    password: str = "rabbit123"
    host: str = "rabbitmq"
    port: int = 5672
    vhost: str = "/"
    prefetch_count: int = 10
    connect_attempts: int = 5
    connect_delay: float = 5.0

    @classmethod
    def from_env(cls) -> "RabbitSettings":
        return cls(
            user=os.environ.get("RABBITMQ_USER", cls.user),
            password=os.environ.get("RABBITMQ_PASSWORD", cls.password),
            host=os.environ.get("RABBITMQ_HOST", cls.host),
            port=_env_int("RABBITMQ_PORT", cls.port),
            vhost=os.environ.get("RABBITMQ_VHOST", cls.vhost),
            prefetch_count=_env_int("RABBITMQ_PREFETCH", cls.prefetch_count),
            connect_attempts=_env_int("RABBITMQ_CONNECT_ATTEMPTS", cls.connect_attempts),
            connect_delay=_env_float("RABBITMQ_CONNECT_DELAY", cls.connect_delay),
        )

    @property
    def _vhost_path(self) -> str:
        # The default vhost "/" is an empty path in an AMQP URL.
        return "" if self.vhost == "/" else quote(self.vhost, safe="")

    @property
    def url(self) -> str:
        user, password = quote(self.user, safe=""), quote(self.password, safe="")
        return f"amqp://{user}:{password}@{self.host}:{self.port}/{self._vhost_path}"

    @property
    def safe_url(self) -> str:
        # Same as url but without the password, for logs.
        return f"amqp://{quote(self.user, safe='')}:***@{self.host}:{self.port}/{self._vhost_path}"


@dataclass(frozen=True)
class RedisSettings:
    url: str = "redis://:redis123@redis:6379"
    connect_timeout: float = 10.0
    connect_attempts: int = 5
    connect_delay: float = 5.0

    @classmethod
    def from_env(cls) -> "RedisSettings":
        url = os.environ.get("REDIS_URL")
        if not url:
            password = os.environ.get("REDIS_PASSWORD", "redis123")
            host = os.environ.get("REDIS_HOST", "redis")
            port = _env_int("REDIS_PORT", 6379)
            url = f"redis://:{quote(password, safe='')}@{host}:{port}"
        return cls(
            url=url,
            connect_timeout=_env_float("REDIS_CONNECT_TIMEOUT", cls.connect_timeout),
            connect_attempts=_env_int("REDIS_CONNECT_ATTEMPTS", cls.connect_attempts),
            connect_delay=_env_float("REDIS_CONNECT_DELAY", cls.connect_delay),
        )


@dataclass(frozen=True)
class AppSettings:
    port: int = 5000
    log_level: str = "INFO"
    # Simulated gateway latency for /api/payments/process.
    payment_delay_s: float = 1.0
    # Block startup until broker/cache connect (or give up) instead of
    # connecting in the background.
    wait_for_services: bool = False

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            port=_env_int("PORT", cls.port),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
            payment_delay_s=_env_float("PAYMENT_DELAY_S", cls.payment_delay_s),
            wait_for_services=os.environ.get("WAIT_FOR_SERVICES", "").lower() in ("1", "true", "yes"),
        )
