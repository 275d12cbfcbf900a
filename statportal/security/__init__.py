"""Authentication for the admin API."""

from .auth import get_current_principal

__all__ = ["get_current_principal"]
