"""
Composition helpers for time-gated security API module.

Docs: docs/architecture/security/time-gated-security-v1.md
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from fastapi import APIRouter
from prometheus_client import CollectorRegistry, Counter

from apps.api.routes import build_security_router
from storefront.contexts.security.adapters.inbound.api.deps import (
    RequireActiveSessionDependency,
    RequireCurrentActorDependency,
    RequireStorefrontAccessDependency,
)
from storefront.contexts.security.adapters.outbound.config import (
    SecurityRuntimeConfig,
    load_security_runtime_config,
)
from storefront.contexts.security.adapters.outbound.notifications import (
    LogOnlyNotificationDispatcher,
    NotificationDispatcherHooks,
    WebhookNotificationDispatcher,
    WebhookNotificationDispatcherConfig,
)
from storefront.contexts.security.adapters.outbound.persistence.in_memory import (
    InMemoryAccountRepository,
    InMemorySessionRepository,
    InMemorySystemLockRepository,
    InMemoryUserCriticalSection,
    InMemoryVerificationRequestRepository,
)
from storefront.contexts.security.adapters.outbound.persistence.postgres import (
    PostgresAccountRepository,
    PostgresAdvisoryLockCriticalSection,
    PostgresSessionRepository,
    PostgresSystemLockRepository,
    PostgresVerificationRequestRepository,
    PsycopgSecurityPostgresGateway,
)
from storefront.contexts.security.adapters.outbound.security import (
    SecretsOtpCodeGenerator,
    SessionCookieCurrentActor,
)
from storefront.contexts.security.adapters.outbound.time import (
    SystemSecurityClock,
    SystemSecuritySleeper,
)
from storefront.contexts.security.application.ports import (
    AccountRepository,
    NotificationDispatcher,
    SecurityHooks,
    SessionRepository,
    SystemLockRepository,
    UserCriticalSection,
    VerificationRequestRepository,
)
from storefront.contexts.security.application.use_cases import (
    SessionGuard,
    SystemLockManager,
    VerificationRequestManager,
)
from storefront.contexts.security.domain.value_objects import AttemptLockoutPolicy

log = logging.getLogger(__name__)

_ENV_NAME_KEY = "STOREFRONT_ENV"
_SECURITY_FAIL_FAST_KEY = "SECURITY_FAIL_FAST"
_SECURITY_CONFIG_PATH_KEY = "SECURITY_CONFIG_PATH"
_SECURITY_PG_DSN_KEY = "SECURITY_PG_DSN"
_SECURITY_NOTIFY_WEBHOOK_URL_KEY = "SECURITY_NOTIFY_WEBHOOK_URL"
_SECURITY_NOTIFY_WEBHOOK_TOKEN_KEY = "SECURITY_NOTIFY_WEBHOOK_TOKEN"
_SECURITY_SESSION_COOKIE_NAME_KEY = "SECURITY_SESSION_COOKIE_NAME"
_ALLOWED_ENVS = ("dev", "prod", "test")


@dataclass(frozen=True, slots=True)
class SecurityRuntimeSettings:
    """
    SecurityRuntimeSettings — environment-level runtime policy for security wiring.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - apps/api/wiring/modules/security.py
      - apps/api/main/app.py
      - configs/prod/security.yaml
    """

    env_name: str
    fail_fast: bool
    config_path: Path
    postgres_dsn: str
    webhook_url: str
    webhook_token: str | None
    cookie_name_override: str | None

    def __post_init__(self) -> None:
        if self.env_name not in _ALLOWED_ENVS:
            raise ValueError(
                f"SecurityRuntimeSettings.env_name must be one of {_ALLOWED_ENVS}, "
                f"got {self.env_name!r}"
            )


@dataclass(frozen=True, slots=True)
class SecurityPersistence:
    requests: VerificationRequestRepository
    accounts: AccountRepository
    locks: SystemLockRepository
    sessions: SessionRepository
    critical_section: UserCriticalSection


@dataclass(frozen=True, slots=True)
class SecurityApiModule:
    """
    SecurityApiModule — wired security router plus dependencies reused by other routers.

    Related:
      - apps/api/main/app.py
      - apps/api/routes/security.py
    """

    router: APIRouter
    current_actor_dependency: RequireCurrentActorDependency
    active_session_dependency: RequireActiveSessionDependency
    storefront_access_dependency: RequireStorefrontAccessDependency
    verification_manager: VerificationRequestManager
    lock_manager: SystemLockManager
    session_guard: SessionGuard
    persistence: SecurityPersistence


class SecurityMetrics:
    """
    SecurityMetrics — Prometheus counters for security state machine transitions.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/ports/security_hooks.py
      - src/storefront/contexts/security/adapters/outbound/notifications/
        notification_dispatcher_hooks.py
    """

    def __init__(self, *, registry: CollectorRegistry) -> None:
        """
        Register security counters in the given registry.

        Args:
            registry: Prometheus registry owned by one app instance.
        Returns:
            None.
        Assumptions:
            One registry per app so repeated `create_app` calls never collide.
        Raises:
            ValueError: Propagated by prometheus client on duplicate metric names.
        Side Effects:
            Registers metrics in `registry`.
        """
        self.verification_created_total = Counter(
            "security_verification_created_total",
            "Verification requests created count",
            registry=registry,
        )
        self.verification_consumed_total = Counter(
            "security_verification_consumed_total",
            "Verification requests consumed by a matching code count",
            registry=registry,
        )
        self.verification_rejected_total = Counter(
            "security_verification_rejected_total",
            "Verification attempts rejected as invalid or expired count",
            registry=registry,
        )
        self.dispatch_sent_total = Counter(
            "security_dispatch_sent_total",
            "Verification codes delivered to dispatcher count",
            registry=registry,
        )
        self.dispatch_errors_total = Counter(
            "security_dispatch_errors_total",
            "Verification code dispatch failures count",
            registry=registry,
        )
        self.lock_transitions_total = Counter(
            "security_lock_transitions_total",
            "Storefront lock transitions count",
            labelnames=("transition",),
            registry=registry,
        )
        self.sessions_evicted_total = Counter(
            "security_sessions_evicted_total",
            "Sessions evicted by a forced single-session login count",
            registry=registry,
        )

    def security_hooks(self) -> SecurityHooks:
        return SecurityHooks(
            on_verification_created=self.verification_created_total.inc,
            on_verification_consumed=self.verification_consumed_total.inc,
            on_verification_rejected=self.verification_rejected_total.inc,
            on_dispatch_failed=self.dispatch_errors_total.inc,
            on_lock_scheduled=self.lock_transitions_total.labels(transition="scheduled").inc,
            on_lock_activated=self.lock_transitions_total.labels(transition="activated").inc,
            on_lock_released=self.lock_transitions_total.labels(transition="released").inc,
            on_sessions_evicted=self.sessions_evicted_total.inc,
        )

    def dispatcher_hooks(self) -> NotificationDispatcherHooks:
        return NotificationDispatcherHooks(on_dispatch_sent=self.dispatch_sent_total.inc)


def build_security_api_module(
    *,
    environ: Mapping[str, str],
    registry: CollectorRegistry,
) -> SecurityApiModule:
    """
    Build fully wired security module from environment settings and YAML policy.

    Docs: docs/architecture/security/time-gated-security-v1.md
    Related: apps.api.routes.security,
      storefront.contexts.security.adapters.outbound,
      apps.api.main.app

    Args:
        environ: Runtime environment mapping.
        registry: Prometheus registry receiving security counters.
    Returns:
        SecurityApiModule: Router and shared dependencies.
    Assumptions:
        Fail-fast is enabled by default in `prod` only.
    Raises:
        FileNotFoundError: If security config path is missing.
        ValueError: If settings are invalid or fail-fast requires missing secrets.
    Side Effects:
        Reads security YAML; registers Prometheus counters.
    """
    settings = _resolve_security_runtime_settings(environ=environ)
    config = load_security_runtime_config(settings.config_path)
    metrics = SecurityMetrics(registry=registry)
    hooks = metrics.security_hooks()
    clock = SystemSecurityClock()
    persistence = _build_persistence(settings=settings, config=config)
    dispatcher = _build_dispatcher(settings=settings, config=config, metrics=metrics)
    cookie_name = settings.cookie_name_override or config.sessions.cookie_name

    verification_manager = VerificationRequestManager(
        requests=persistence.requests,
        accounts=persistence.accounts,
        dispatcher=dispatcher,
        code_generator=SecretsOtpCodeGenerator(),
        clock=clock,
        code_ttl=config.verification.code_ttl,
        lockout_policy=AttemptLockoutPolicy(
            max_failed_attempts=config.verification.max_failed_attempts,
        ),
        hooks=hooks,
    )
    lock_manager = SystemLockManager(
        repository=persistence.locks,
        clock=clock,
        lock_key=config.system_lock.lock_key,
        lock_delay=config.system_lock.lock_delay,
        hooks=hooks,
    )
    session_guard = SessionGuard(
        accounts=persistence.accounts,
        sessions=persistence.sessions,
        critical_section=persistence.critical_section,
        clock=clock,
        sleeper=SystemSecuritySleeper(),
        settle_delay=config.sessions.settle_delay,
        session_lifetime=config.sessions.lifetime,
        hooks=hooks,
    )

    current_actor_dependency = RequireCurrentActorDependency(
        current_actor=SessionCookieCurrentActor(
            sessions=persistence.sessions,
            accounts=persistence.accounts,
            clock=clock,
            session_lifetime=config.sessions.lifetime,
        ),
        cookie_name=cookie_name,
    )
    active_session_dependency = RequireActiveSessionDependency(
        current_actor_dependency=current_actor_dependency,
        session_guard=session_guard,
    )
    storefront_access_dependency = RequireStorefrontAccessDependency(
        lock_manager=lock_manager,
        current_actor_dependency=current_actor_dependency,
    )

    router = build_security_router(
        verification_manager=verification_manager,
        lock_manager=lock_manager,
        session_guard=session_guard,
        current_actor_dependency=current_actor_dependency,
        active_session_dependency=active_session_dependency,
        storefront_access_dependency=storefront_access_dependency,
    )
    log.info(
        "security module wired env=%s backend=%s dispatcher=%s lock_key=%s",
        settings.env_name,
        config.persistence_backend,
        config.notifications.dispatcher,
        config.system_lock.lock_key,
    )
    return SecurityApiModule(
        router=router,
        current_actor_dependency=current_actor_dependency,
        active_session_dependency=active_session_dependency,
        storefront_access_dependency=storefront_access_dependency,
        verification_manager=verification_manager,
        lock_manager=lock_manager,
        session_guard=session_guard,
        persistence=persistence,
    )


def _build_persistence(
    *,
    settings: SecurityRuntimeSettings,
    config: SecurityRuntimeConfig,
) -> SecurityPersistence:
    """
    Build repository adapters for configured persistence backend.

    Args:
        settings: Resolved runtime settings.
        config: Loaded YAML policy.
    Returns:
        SecurityPersistence: Postgres or in-memory adapters.
    Assumptions:
        Without fail-fast a missing DSN degrades to in-memory storage for local runs.
    Raises:
        ValueError: If fail-fast requires DSN and it is missing.
    Side Effects:
        None.
    """
    if config.persistence_backend == "postgres":
        if settings.postgres_dsn:
            gateway = PsycopgSecurityPostgresGateway(dsn=settings.postgres_dsn)
            return SecurityPersistence(
                requests=PostgresVerificationRequestRepository(gateway=gateway),
                accounts=PostgresAccountRepository(gateway=gateway),
                locks=PostgresSystemLockRepository(gateway=gateway),
                sessions=PostgresSessionRepository(gateway=gateway),
                critical_section=PostgresAdvisoryLockCriticalSection(dsn=settings.postgres_dsn),
            )
        if settings.fail_fast:
            raise ValueError(f"{_SECURITY_PG_DSN_KEY} is required for postgres persistence")
        log.warning("security postgres DSN missing; falling back to in-memory persistence")

    return SecurityPersistence(
        requests=InMemoryVerificationRequestRepository(),
        accounts=InMemoryAccountRepository(),
        locks=InMemorySystemLockRepository(),
        sessions=InMemorySessionRepository(),
        critical_section=InMemoryUserCriticalSection(),
    )


def _build_dispatcher(
    *,
    settings: SecurityRuntimeSettings,
    config: SecurityRuntimeConfig,
    metrics: SecurityMetrics,
) -> NotificationDispatcher:
    hooks = metrics.dispatcher_hooks()
    if config.notifications.dispatcher == "webhook":
        if settings.webhook_url:
            return WebhookNotificationDispatcher(
                config=WebhookNotificationDispatcherConfig(
                    url=settings.webhook_url,
                    token=settings.webhook_token,
                    send_timeout_s=config.notifications.send_timeout_s,
                ),
                hooks=hooks,
            )
        if settings.fail_fast:
            raise ValueError(
                f"{_SECURITY_NOTIFY_WEBHOOK_URL_KEY} is required for webhook dispatcher"
            )
        log.warning("security webhook URL missing; falling back to log-only dispatcher")
    return LogOnlyNotificationDispatcher(hooks=hooks)


def _resolve_security_runtime_settings(*, environ: Mapping[str, str]) -> SecurityRuntimeSettings:
    """
    Resolve security runtime settings with fail-fast policy and defaults.

    Args:
        environ: Runtime environment mapping.
    Returns:
        SecurityRuntimeSettings: Validated normalized settings.
    Assumptions:
        Missing `STOREFRONT_ENV` defaults to `dev`; config path defaults to
        `configs/<env>/security.yaml`.
    Raises:
        ValueError: If env values are invalid.
    Side Effects:
        None.
    """
    env_name = _resolve_env_name(environ=environ)
    raw_config_path = environ.get(_SECURITY_CONFIG_PATH_KEY, "").strip()
    config_path = (
        Path(raw_config_path)
        if raw_config_path
        else Path("configs") / env_name / "security.yaml"
    )
    webhook_token = environ.get(_SECURITY_NOTIFY_WEBHOOK_TOKEN_KEY, "").strip()
    cookie_name = environ.get(_SECURITY_SESSION_COOKIE_NAME_KEY, "").strip()
    return SecurityRuntimeSettings(
        env_name=env_name,
        fail_fast=_resolve_fail_fast(environ=environ, env_name=env_name),
        config_path=config_path,
        postgres_dsn=environ.get(_SECURITY_PG_DSN_KEY, "").strip(),
        webhook_url=environ.get(_SECURITY_NOTIFY_WEBHOOK_URL_KEY, "").strip(),
        webhook_token=webhook_token or None,
        cookie_name_override=cookie_name or None,
    )


def _resolve_env_name(*, environ: Mapping[str, str]) -> str:
    raw_env_name = environ.get(_ENV_NAME_KEY, "dev").strip().lower()
    if raw_env_name not in _ALLOWED_ENVS:
        raise ValueError(
            f"{_ENV_NAME_KEY} must be one of {_ALLOWED_ENVS}, got {raw_env_name!r}"
        )
    return raw_env_name


def _resolve_fail_fast(*, environ: Mapping[str, str], env_name: str) -> bool:
    """
    Resolve fail-fast policy for security startup validation.

    Args:
        environ: Runtime environment mapping.
        env_name: Normalized environment name.
    Returns:
        bool: Effective fail-fast flag.
    Assumptions:
        Default is enabled for `prod` and disabled for `dev`/`test`.
    Raises:
        ValueError: If override value is not parseable as boolean.
    Side Effects:
        None.
    """
    raw_override = environ.get(_SECURITY_FAIL_FAST_KEY, "").strip()
    if not raw_override:
        return env_name == "prod"
    return _parse_bool(raw_value=raw_override, key=_SECURITY_FAIL_FAST_KEY)


def _parse_bool(*, raw_value: str, key: str) -> bool:
    normalized = raw_value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(
        f"{key} must be a boolean literal (1/0/true/false/yes/no/on/off), got {raw_value!r}"
    )
