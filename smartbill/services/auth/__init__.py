"""Local sign-in state."""

from smartbill.services.auth.session import (
    LoginMethod,
    NotLoggedInError,
    SessionManager,
    UserIdentity,
)

__all__ = [
    "LoginMethod",
    "NotLoggedInError",
    "SessionManager",
    "UserIdentity",
]
