"""ORM models for relocation_db."""

from relocation_db.models.artifact import GeneratedArtifact, IdempotencyKey
from relocation_db.models.base import Base
from relocation_db.models.document import MemberDocument
from relocation_db.models.enums import DocumentKind, VerificationKind
from relocation_db.models.member import MemberProfile, VerificationResult

__all__ = [
    "Base",
    "DocumentKind",
    "GeneratedArtifact",
    "IdempotencyKey",
    "MemberDocument",
    "MemberProfile",
    "VerificationKind",
    "VerificationResult",
]
