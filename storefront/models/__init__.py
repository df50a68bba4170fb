"""
SQLAlchemy models for the storefront.
"""
from storefront.models.user import User

__all__ = ["User"]
