# Import all models for easier access
from .event import Event  # noqa: F401
from .registration import Registration  # noqa: F401
from .user import User, UserRole  # noqa: F401
