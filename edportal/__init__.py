"""
Academic core for the course portal.

Importing the package is cheap; the FastAPI app and CLI live in ``apps/`` and
``scripts/`` and pull in their heavier dependencies on their own.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("edportal")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
