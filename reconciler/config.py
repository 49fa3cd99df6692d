import os
import logging
from typing import Optional

from reconciler.errors import ConfigError

DEFAULT_NAMESPACE = "redis-i4"
DEFAULT_POD_PREFIX = "redis-cluster"
DEFAULT_REDIS_PORT = 6379

TRANSPORTS = ("kubectl", "direct")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ReconcilerConfig:
    """Settings for one reconcile run. Environment first, CLI arguments override."""

    def __init__(self, namespace: Optional[str] = None, pod_prefix: Optional[str] = None,
                 num_pods: Optional[int] = None, dry_run: Optional[bool] = None,
                 skip_if_healthy: Optional[bool] = None, redis_port: Optional[int] = None,
                 redis_password: Optional[str] = None, max_wait_seconds: Optional[int] = None,
                 poll_interval_seconds: Optional[int] = None, command_timeout: Optional[int] = None,
                 transport: Optional[str] = None, log_level: Optional[str] = None):
        self.namespace = namespace or os.getenv('RECONCILE_NAMESPACE', DEFAULT_NAMESPACE)
        self.pod_prefix = pod_prefix or os.getenv('RECONCILE_POD_PREFIX', DEFAULT_POD_PREFIX)
        # None means auto-detect by counting <prefix>-<n> pods
        self.num_pods = num_pods if num_pods is not None else _env_int('RECONCILE_NUM_PODS', None)
        self.dry_run = dry_run if dry_run is not None else _env_flag('DEBUG', False)
        self.skip_if_healthy = (skip_if_healthy if skip_if_healthy is not None
                                else _env_flag('SKIP_IF_HEALTHY', True))
        self.redis_port = redis_port or _env_int('REDIS_PORT', DEFAULT_REDIS_PORT)
        self.redis_password = redis_password or os.getenv('REDIS_PASSWORD') or None
        self.max_wait_seconds = (max_wait_seconds if max_wait_seconds is not None
                                 else _env_int('MAX_WAIT_SECONDS', 900))
        self.poll_interval_seconds = (poll_interval_seconds if poll_interval_seconds is not None
                                      else _env_int('WAIT_INTERVAL_SECONDS', 5))
        self.command_timeout = (command_timeout if command_timeout is not None
                                else _env_int('COMMAND_TIMEOUT_SECONDS', 30))
        self.transport = (transport or os.getenv('RECONCILE_TRANSPORT', 'kubectl')).lower()
        self.log_level = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()

        self.validate()

    def validate(self):
        if self.num_pods is not None and self.num_pods < 1:
            raise ConfigError(f"num_pods must be at least 1, got {self.num_pods}")
        if self.poll_interval_seconds <= 0:
            raise ConfigError("poll interval must be positive")
        if self.max_wait_seconds < 0:
            raise ConfigError("max wait must not be negative")
        if self.command_timeout <= 0:
            raise ConfigError(f"command timeout must be positive, got {self.command_timeout}")
        if self.transport not in TRANSPORTS:
            raise ConfigError(f"Unknown transport '{self.transport}', expected one of {TRANSPORTS}")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"Unknown log level '{self.log_level}'")

    def __repr__(self):
        # Never echo the password
        return (f"ReconcilerConfig(namespace={self.namespace}, pod_prefix={self.pod_prefix}, "
                f"num_pods={self.num_pods}, dry_run={self.dry_run}, "
                f"skip_if_healthy={self.skip_if_healthy}, transport={self.transport})")
