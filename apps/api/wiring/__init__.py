from .modules import SecurityApiModule, SecurityMetrics, build_security_api_module

__all__ = [
    "SecurityApiModule",
    "SecurityMetrics",
    "build_security_api_module",
]
