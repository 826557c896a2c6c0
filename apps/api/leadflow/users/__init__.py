from leadflow.users.cache import UserCache, user_cache
from leadflow.users.models import AppUser
from leadflow.users.schemas import UNKNOWN_USER, UserCreate, UserRead, UserUpdate
from leadflow.users.service import UserService, user_service

__all__ = [
    "AppUser",
    "UNKNOWN_USER",
    "UserCache",
    "UserCreate",
    "UserRead",
    "UserService",
    "UserUpdate",
    "user_cache",
    "user_service",
]
