"""Collaborator contracts and the snapshot-file document store."""

from .document_store import DocumentStore, StoreIdentity
from .interfaces import (
    AssignmentResultsProvider,
    CourseContentProvider,
    IdentityProvider,
    PortalProviders,
    ProgramProvider,
    RosterProvider,
    VideoSource,
)

__all__ = [
    "AssignmentResultsProvider",
    "CourseContentProvider",
    "DocumentStore",
    "IdentityProvider",
    "PortalProviders",
    "ProgramProvider",
    "RosterProvider",
    "StoreIdentity",
    "VideoSource",
]
