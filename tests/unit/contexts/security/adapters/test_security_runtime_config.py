from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from storefront.contexts.security.adapters.outbound.config import load_security_runtime_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "security.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_security_runtime_config_applies_defaults_for_missing_sections(
    tmp_path: Path,
) -> None:
    config = load_security_runtime_config(_write(tmp_path, "version: 1\nsecurity: {}\n"))

    assert config.persistence_backend == "in_memory"
    assert config.verification.code_ttl == timedelta(minutes=15)
    assert config.verification.max_failed_attempts == 3
    assert config.system_lock.lock_key == "customer_access"
    assert config.system_lock.lock_delay == timedelta(seconds=60)
    assert config.sessions.settle_delay == timedelta(milliseconds=100)
    assert config.sessions.lifetime == timedelta(minutes=120)
    assert config.sessions.cookie_name == "storefront_session"
    assert config.notifications.dispatcher == "log_only"
    assert config.notifications.send_timeout_s == 5.0


def test_load_security_runtime_config_reads_explicit_values(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
version: 1
security:
  persistence:
    backend: postgres
  verification:
    code_ttl_seconds: 300
    max_failed_attempts: 5
  system_lock:
    lock_key: " flash_sale "
    lock_delay_seconds: 0
  sessions:
    settle_delay_ms: 250
    lifetime_minutes: 30
    cookie_name: sid
  notifications:
    dispatcher: webhook
    send_timeout_s: 3
""",
    )

    config = load_security_runtime_config(path)

    assert config.persistence_backend == "postgres"
    assert config.verification.code_ttl_seconds == 300
    assert config.verification.max_failed_attempts == 5
    assert config.system_lock.lock_key == "flash_sale"
    assert config.system_lock.lock_delay == timedelta(0)
    assert config.sessions.settle_delay_ms == 250
    assert config.sessions.cookie_name == "sid"
    assert config.notifications.dispatcher == "webhook"
    assert config.notifications.send_timeout_s == 3.0


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("- 1\n", "mapping at top-level"),
        ("version: 1\n", "missing required key: security"),
        ("version: 2\nsecurity: {}\n", "version must be 1"),
        ("version: 1\nsecurity:\n  persistence:\n    backend: redis\n", "backend must be one of"),
        ("version: 1\nsecurity:\n  verification:\n    code_ttl_seconds: 0\n", "must be > 0"),
        ("version: 1\nsecurity:\n  verification:\n    max_failed_attempts: 0\n", "must be > 0"),
        ("version: 1\nsecurity:\n  sessions:\n    settle_delay_ms: 9000\n", "<= 5000"),
        ("version: 1\nsecurity:\n  sessions:\n    cookie_name: '  '\n", "must be non-empty"),
        ("version: 1\nsecurity:\n  system_lock:\n    lock_delay_seconds: true\n", "expected int"),
        ("version: 1\nsecurity:\n  notifications:\n    dispatcher: sms\n", "dispatcher must be"),
    ],
)
def test_load_security_runtime_config_rejects_invalid_payloads(
    tmp_path: Path,
    text: str,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        load_security_runtime_config(_write(tmp_path, text))


def test_load_security_runtime_config_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="security config not found"):
        load_security_runtime_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize("env_name", ["dev", "test", "prod"])
def test_repository_security_configs_are_valid(env_name: str) -> None:
    path = Path(__file__).resolve().parents[5] / "configs" / env_name / "security.yaml"

    config = load_security_runtime_config(path)

    assert config.version == 1
    assert config.sessions.cookie_name == "storefront_session"
