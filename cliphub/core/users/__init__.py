"""
User accounts created through the login flow.
"""

from .login import LoginResult, LoginService, UserRepository
from .models import User

__all__ = [
    "LoginResult",
    "LoginService",
    "User",
    "UserRepository",
]
