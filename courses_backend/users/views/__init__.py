from .auth import LoginView, RegisterView
from .me import MeView
from .role_manager import RoleEmailView

__all__ = [
    "RegisterView",
    "LoginView",
    "MeView",
    "RoleEmailView",
]
