"""
Shared Kernel primitives.

Re-exports the identifiers shared across storefront contexts:

    from storefront.shared_kernel.primitives import UserId
"""

from .user_id import UserId

__all__ = [
    "UserId",
]
