"""Exceptions raised at the edges of the portal core.

The derivations in ``edportal.academics`` never raise these; providers raise
``CollaboratorError`` and the page controller turns it into an empty result
plus a notice.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base exception for portal errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class CollaboratorError(PortalError):
    """A provider could not produce data (store unreadable, fetch failed)."""


class AuthorizationDenied(PortalError):
    """The viewer's role does not grant the requested view."""


class CourseNotFound(PortalError, LookupError):
    """No course exists under the requested id."""


class ConfigError(PortalError, ValueError):
    """Portal configuration is missing or invalid."""


__all__ = ["AuthorizationDenied", "CollaboratorError", "ConfigError", "CourseNotFound", "PortalError"]
