"""Closed enumeration of the supported conversational flows.

Each flow is tagged with its category: *guides* are informational reports
(apostille, pets, mortgages, banks) and *documents* are visa paperwork
drafted for the member to sign.  The category drives the preview TTL,
the handle prefix, the "last question" wording, and the catalog lifetime.
"""

from __future__ import annotations

import enum

from relocation_flows.errors import UnknownFlow, ValidationError


class FlowCategory(str, enum.Enum):
    """What a flow produces."""

    GUIDE = "guide"
    DOCUMENT = "document"


class FlowType(str, enum.Enum):
    """Every flow the registry can serve.

    Values are the public identifiers used in URLs and YAML file names.
    """

    APOSTILLE = "apostille"
    PET_RELOCATION = "pet-relocation"
    FRENCH_MORTGAGES = "french-mortgages"
    BANK_RATINGS = "bank-ratings"
    COVER_LETTER = "cover-letter"
    FINANCIAL_STATEMENT = "financial-statement"
    ATTESTATION = "attestation"
    ACCOMMODATION_LETTER = "accommodation-letter"

    @property
    def category(self) -> FlowCategory:
        if self in _GUIDES:
            return FlowCategory.GUIDE
        return FlowCategory.DOCUMENT

    @classmethod
    def parse(cls, raw: str | FlowType | None) -> FlowType:
        """Resolve a caller-supplied identifier to a ``FlowType``.

        Raises:
            ValidationError: if *raw* is empty or missing.
            UnknownFlow: if *raw* names no known flow.
        """
        if isinstance(raw, FlowType):
            return raw
        if raw is None or not str(raw).strip():
            raise ValidationError("flow_type", "No flow type specified")
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise UnknownFlow(str(raw)) from None


_GUIDES = frozenset({
    FlowType.APOSTILLE,
    FlowType.PET_RELOCATION,
    FlowType.FRENCH_MORTGAGES,
    FlowType.BANK_RATINGS,
})
