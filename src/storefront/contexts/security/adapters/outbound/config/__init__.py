from .security_runtime_config import (
    NotificationPolicyConfig,
    SecurityRuntimeConfig,
    SessionPolicyConfig,
    SystemLockPolicyConfig,
    VerificationPolicyConfig,
    load_security_runtime_config,
)

__all__ = [
    "NotificationPolicyConfig",
    "SecurityRuntimeConfig",
    "SessionPolicyConfig",
    "SystemLockPolicyConfig",
    "VerificationPolicyConfig",
    "load_security_runtime_config",
]
