from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

import yaml

_DISPATCHER_KINDS = ("log_only", "webhook")
_PERSISTENCE_BACKENDS = ("in_memory", "postgres")


@dataclass(frozen=True, slots=True)
class VerificationPolicyConfig:
    """
    VerificationPolicyConfig — OTP lifetime and wrong-code lockout threshold.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - src/storefront/contexts/security/domain/value_objects/attempt_lockout_policy.py
    """

    code_ttl_seconds: int
    max_failed_attempts: int = 3

    def __post_init__(self) -> None:
        if self.code_ttl_seconds <= 0:
            raise ValueError("security.verification.code_ttl_seconds must be > 0")
        if self.max_failed_attempts <= 0:
            raise ValueError("security.verification.max_failed_attempts must be > 0")

    @property
    def code_ttl(self) -> timedelta:
        return timedelta(seconds=self.code_ttl_seconds)


@dataclass(frozen=True, slots=True)
class SystemLockPolicyConfig:
    """
    SystemLockPolicyConfig — storefront lock key and activation delay.

    Related:
      - src/storefront/contexts/security/application/use_cases/system_lock_manager.py
    """

    lock_key: str
    lock_delay_seconds: int

    def __post_init__(self) -> None:
        if not self.lock_key.strip():
            raise ValueError("security.system_lock.lock_key must be non-empty")
        if self.lock_delay_seconds < 0:
            raise ValueError("security.system_lock.lock_delay_seconds must be >= 0")

    @property
    def lock_delay(self) -> timedelta:
        return timedelta(seconds=self.lock_delay_seconds)


@dataclass(frozen=True, slots=True)
class SessionPolicyConfig:
    """
    SessionPolicyConfig — single-session settling delay, idle lifetime and cookie name.

    Related:
      - src/storefront/contexts/security/application/use_cases/session_guard.py
      - src/storefront/contexts/security/adapters/inbound/api/deps/current_actor.py
    """

    settle_delay_ms: int
    lifetime_minutes: int
    cookie_name: str

    def __post_init__(self) -> None:
        """
        Validate session policy invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Settling delay is short (sub-second) and never blocks for long under the lock.
        Raises:
            ValueError: If one of values is invalid.
        Side Effects:
            None.
        """
        if self.settle_delay_ms < 0:
            raise ValueError("security.sessions.settle_delay_ms must be >= 0")
        if self.settle_delay_ms > 5000:
            raise ValueError("security.sessions.settle_delay_ms must be <= 5000")
        if self.lifetime_minutes <= 0:
            raise ValueError("security.sessions.lifetime_minutes must be > 0")
        if not self.cookie_name.strip():
            raise ValueError("security.sessions.cookie_name must be non-empty")

    @property
    def settle_delay(self) -> timedelta:
        return timedelta(milliseconds=self.settle_delay_ms)

    @property
    def lifetime(self) -> timedelta:
        return timedelta(minutes=self.lifetime_minutes)


@dataclass(frozen=True, slots=True)
class NotificationPolicyConfig:
    dispatcher: str
    send_timeout_s: float

    def __post_init__(self) -> None:
        if self.dispatcher not in _DISPATCHER_KINDS:
            raise ValueError(
                f"security.notifications.dispatcher must be one of {_DISPATCHER_KINDS}, "
                f"got {self.dispatcher!r}"
            )
        if self.send_timeout_s <= 0:
            raise ValueError("security.notifications.send_timeout_s must be > 0")


@dataclass(frozen=True, slots=True)
class SecurityRuntimeConfig:
    """
    SecurityRuntimeConfig — top-level security policy loaded from `configs/<env>/security.yaml`.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - apps/api/wiring/modules/security.py
      - configs/dev/security.yaml
      - configs/prod/security.yaml
    """

    version: int
    persistence_backend: str
    verification: VerificationPolicyConfig
    system_lock: SystemLockPolicyConfig
    sessions: SessionPolicyConfig
    notifications: NotificationPolicyConfig

    def __post_init__(self) -> None:
        if self.version != 1:
            raise ValueError(f"security config version must be 1, got {self.version}")
        if self.persistence_backend not in _PERSISTENCE_BACKENDS:
            raise ValueError(
                f"security.persistence.backend must be one of {_PERSISTENCE_BACKENDS}, "
                f"got {self.persistence_backend!r}"
            )


def load_security_runtime_config(path: str | Path) -> SecurityRuntimeConfig:
    """
    Load and validate security runtime YAML config.

    Args:
        path: Path to `security.yaml`.
    Returns:
        SecurityRuntimeConfig: Parsed runtime config.
    Assumptions:
        YAML has top-level `version` and `security` mapping; every section is optional.
    Raises:
        FileNotFoundError: If config path does not exist.
        ValueError: If YAML shape/values are invalid.
    Side Effects:
        Reads one config file from disk.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"security config not found: {config_path}")

    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError("security config must be mapping at top-level")

    security_map = _get_mapping(payload, "security", required=True)
    persistence_map = _get_mapping(security_map, "persistence", required=False)
    verification_map = _get_mapping(security_map, "verification", required=False)
    lock_map = _get_mapping(security_map, "system_lock", required=False)
    sessions_map = _get_mapping(security_map, "sessions", required=False)
    notifications_map = _get_mapping(security_map, "notifications", required=False)

    return SecurityRuntimeConfig(
        version=_get_int(payload, "version", required=True),
        persistence_backend=_get_str_with_default(
            persistence_map,
            "backend",
            default="in_memory",
        ),
        verification=VerificationPolicyConfig(
            code_ttl_seconds=_get_int_with_default(
                verification_map,
                "code_ttl_seconds",
                default=900,
            ),
            max_failed_attempts=_get_int_with_default(
                verification_map,
                "max_failed_attempts",
                default=3,
            ),
        ),
        system_lock=SystemLockPolicyConfig(
            lock_key=_get_str_with_default(lock_map, "lock_key", default="customer_access"),
            lock_delay_seconds=_get_int_with_default(lock_map, "lock_delay_seconds", default=60),
        ),
        sessions=SessionPolicyConfig(
            settle_delay_ms=_get_int_with_default(sessions_map, "settle_delay_ms", default=100),
            lifetime_minutes=_get_int_with_default(
                sessions_map,
                "lifetime_minutes",
                default=120,
            ),
            cookie_name=_get_str_with_default(
                sessions_map,
                "cookie_name",
                default="storefront_session",
            ),
        ),
        notifications=NotificationPolicyConfig(
            dispatcher=_get_str_with_default(
                notifications_map,
                "dispatcher",
                default="log_only",
            ),
            send_timeout_s=_get_float_with_default(
                notifications_map,
                "send_timeout_s",
                default=5.0,
            ),
        ),
    )


def _get_mapping(data: Mapping[str, Any], key: str, *, required: bool) -> Mapping[str, Any]:
    """
    Read nested mapping value from config payload.

    Args:
        data: Source mapping.
        key: Mapping key name.
        required: Whether key is required.
    Returns:
        Mapping[str, Any]: Nested mapping or empty mapping for optional missing key.
    Assumptions:
        Optional missing sections are represented as empty mapping.
    Raises:
        ValueError: If required key is missing or value is not mapping.
    Side Effects:
        None.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"expected mapping at key '{key}', got {type(value).__name__}")
    return value


def _get_int(data: Mapping[str, Any], key: str, *, required: bool) -> int:
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected int at key '{key}', got {type(value).__name__}")
    return value


def _get_int_with_default(data: Mapping[str, Any], key: str, *, default: int) -> int:
    if key not in data:
        return default
    return _get_int(data, key, required=True)


def _get_float_with_default(data: Mapping[str, Any], key: str, *, default: float) -> float:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected float at key '{key}', got {type(value).__name__}")
    return float(value)


def _get_str_with_default(data: Mapping[str, Any], key: str, *, default: str) -> str:
    """
    Read optional non-empty string config value with explicit default.

    Args:
        data: Source mapping.
        key: String key name.
        default: Value used when key is absent.
    Returns:
        str: Parsed non-empty string value.
    Assumptions:
        Empty strings are invalid for runtime config fields.
    Raises:
        ValueError: If present value is not non-empty string.
    Side Effects:
        None.
    """
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"expected string at key '{key}', got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"key '{key}' must be non-empty")
    return normalized
