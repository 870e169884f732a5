from .storefront_error import StorefrontError

__all__ = ["StorefrontError"]
