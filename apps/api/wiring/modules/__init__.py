from .security import (
    SecurityApiModule,
    SecurityMetrics,
    SecurityRuntimeSettings,
    build_security_api_module,
)

__all__ = [
    "SecurityApiModule",
    "SecurityMetrics",
    "SecurityRuntimeSettings",
    "build_security_api_module",
]
