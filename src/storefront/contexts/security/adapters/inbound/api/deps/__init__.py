from .active_session import RequireActiveSessionDependency
from .current_actor import RequireCurrentActorDependency
from .storefront_access import RequireStorefrontAccessDependency

__all__ = [
    "RequireActiveSessionDependency",
    "RequireCurrentActorDependency",
    "RequireStorefrontAccessDependency",
]
