"""Database-level enumerations."""

import enum


class DocumentKind(str, enum.Enum):
    """What a "My Documents" catalog row points at.

    Guides and generated documents share the catalog but have different
    retention: documents are kept longer because members resubmit them.
    """

    GUIDE = "guide"
    DOCUMENT = "document"


class VerificationKind(str, enum.Enum):
    """Kinds of stored verification results a member can clear."""

    HEALTH_INSURANCE = "health_insurance"
