"""Persistence module for sessionvault.

Archiving, integrity digests, chunking, the document store and the session
store built on top of them.
"""

from sessionvault.persistence.archiver import Archive, Archiver
from sessionvault.persistence.document_store import (
    DocumentStore,
    RecordFilter,
    SqlDocumentStore,
)
from sessionvault.persistence.models import (
    ChunkRecord,
    Collection,
    SessionRecord,
    SessionSummary,
)
from sessionvault.persistence.session_store import SessionStore

__all__ = [
    # Archiving
    "Archive",
    "Archiver",
    # Records
    "ChunkRecord",
    "Collection",
    "SessionRecord",
    "SessionSummary",
    # Stores
    "DocumentStore",
    "RecordFilter",
    "SqlDocumentStore",
    "SessionStore",
]
