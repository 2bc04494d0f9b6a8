"""Generated content and artifact models.

These are decoupled from the ORM rows in ``relocation_db`` so that API
consumers never see database internals; the store converts between them.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field

from relocation_flows.models.conversation import Answer
from relocation_flows.models.flow import FlowType


class ContentSection(BaseModel):
    """One block of generated content: optional heading, prose, bullet items."""

    heading: Optional[str] = None
    body: str = ""
    items: list[str] = Field(default_factory=list)


class GeneratedContent(BaseModel):
    """Plain structured output of a generator, before it gets a handle."""

    title: str
    subtitle: Optional[str] = None
    sections: list[ContentSection] = Field(default_factory=list)
    ai_generated: bool = False


class Artifact(BaseModel):
    """Generated content stored under a short-lived retrieval handle."""

    handle: str
    subject_id: str
    flow_type: FlowType
    title: str
    subtitle: Optional[str] = None
    sections: list[ContentSection] = Field(default_factory=list)
    answers: dict[str, Answer] = Field(default_factory=dict)
    ai_generated: bool = False
    created_at: datetime
    ttl_seconds: int

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def content_dict(self) -> dict[str, Any]:
        """JSON-ready content payload (what the DB stores)."""
        return {
            "subtitle": self.subtitle,
            "sections": [s.model_dump() for s in self.sections],
            "answers": self.answers,
        }


class DownloadFormat(str, enum.Enum):
    """``primary`` is a Word-compatible file; ``print`` opens a print dialog."""

    PRIMARY = "primary"
    PRINT = "print"


class DownloadLink(BaseModel):
    """Result of a download: where the rendered file lives."""

    url: str
    format: DownloadFormat
    saved_document_id: Optional[int] = None


class SavedDocument(BaseModel):
    """Public view of a "My Documents" catalog entry."""

    id: int
    document_type: str
    title: str
    file_url: Optional[str] = None
    file_ext: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None


class FlowSummary(BaseModel):
    """Flow listing entry for UIs."""

    flow_type: FlowType
    category: str
    title: str
    question_count: int
