"""Authentication module."""

from src.auth.context import AuthContext
from src.auth.dependencies import get_auth_context, require_admin, require_reviewer
from src.auth.jwt import create_access_token, verify_token

__all__ = [
    "AuthContext",
    "create_access_token",
    "verify_token",
    "get_auth_context",
    "require_admin",
    "require_reviewer",
]
