"""relocation_db — PostgreSQL persistence layer for the member flows.

This package provides the ORM models, the async engine factory, and the
repositories for preview artifacts, idempotency keys, the "My Documents"
catalog, member profiles and verification results.  It is consumed by
the flow SDK and the FastAPI server.
"""

from relocation_db.engine import dispose_engine, get_engine, get_session_factory, session_scope
from relocation_db.models import (
    DocumentKind,
    GeneratedArtifact,
    IdempotencyKey,
    MemberDocument,
    MemberProfile,
    VerificationResult,
)
from relocation_db.repository import (
    ArtifactRepository,
    DocumentRepository,
    IdempotencyRepository,
    ProfileRepository,
    VerificationRepository,
)

__all__ = [
    "DocumentKind",
    "GeneratedArtifact",
    "IdempotencyKey",
    "MemberDocument",
    "MemberProfile",
    "VerificationResult",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "ArtifactRepository",
    "DocumentRepository",
    "IdempotencyRepository",
    "ProfileRepository",
    "VerificationRepository",
]
