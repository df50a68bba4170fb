from storefront.client.errors import ApiError, PasswordMismatchError, SessionExpiredError
from storefront.client.session import StorefrontSession

__all__ = ["ApiError", "PasswordMismatchError", "SessionExpiredError", "StorefrontSession"]
