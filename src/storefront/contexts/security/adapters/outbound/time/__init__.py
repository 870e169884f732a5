from .system_security_clock import SystemSecurityClock
from .system_security_sleeper import SystemSecuritySleeper

__all__ = [
    "SystemSecurityClock",
    "SystemSecuritySleeper",
]
