"""
Authentication service - user accounts and the signed-in principal.
"""

from .models import User
from .user_repository import AuthError, UserRepository, get_user_repository
from .auth_manager import AuthManager, get_auth_manager

__all__ = [
    'User',
    'AuthError',
    'UserRepository',
    'get_user_repository',
    'AuthManager',
    'get_auth_manager'
]
