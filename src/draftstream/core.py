"""Core data models for draftstream."""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

USER = "user"
ASSISTANT = "assistant"

DEFAULT_BRIEFING = {
    "overall_tone": "Dramatic",
    "script_format": "Narrative",
    "template_id": "template-1",
    "objectives": "",
    "target_audience": "",
    "distribution_platform": "",
    "genre": "",
    "sub_genres": [],
    "stylistic_references": "",
    "logline": "",
    "plot_outline": "",
    "theme": "",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Turn:
    """A single message in a project conversation."""

    id: str
    role: str  # "user" | "assistant"
    response_text: str = ""
    reasoning_text: str = ""
    reasoning_visible: bool = False
    pending: bool = False
    created_at: datetime = field(default_factory=_now)
    error: Optional[str] = None  # user-facing message once the turn failed
    partial_response: str = ""  # response streamed before a failure

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class StoredTurnRecord:
    """Durable form of a turn: one text blob plus a role."""

    role: str
    content: str
    id: Optional[str] = None  # assigned by the store
    created_at: Optional[datetime] = None


@dataclass
class ProjectMetadata:
    """Title and briefing fields of a project."""

    title: str = ""
    briefing: dict = field(default_factory=lambda: copy.deepcopy(DEFAULT_BRIEFING))

    def snapshot(self) -> "ProjectMetadata":
        """Return a deep copy safe to hand to a store."""
        return ProjectMetadata(title=self.title, briefing=copy.deepcopy(self.briefing))

    def to_dict(self) -> dict:
        return {"title": self.title, "briefing": copy.deepcopy(self.briefing)}

    @classmethod
    def from_dict(cls, data: dict | None) -> "ProjectMetadata":
        data = data or {}
        briefing = copy.deepcopy(DEFAULT_BRIEFING)
        briefing.update(data.get("briefing") or {})
        return cls(title=data.get("title") or "", briefing=briefing)
