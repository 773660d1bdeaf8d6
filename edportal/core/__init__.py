"""
Configuration, error types and the access log shared by the API and CLI.
"""

from .audit import AccessEvent, AccessLogger
from .config import PortalConfig, config_from_env, load_portal_config
from .errors import AuthorizationDenied, CollaboratorError, ConfigError, CourseNotFound, PortalError

__all__ = [
    "AccessEvent",
    "AccessLogger",
    "AuthorizationDenied",
    "CollaboratorError",
    "ConfigError",
    "CourseNotFound",
    "PortalConfig",
    "PortalError",
    "config_from_env",
    "load_portal_config",
]
