"""
Models - Records owned by the annotation store
Each record converts to and from the JSON dictionaries the persistence
backends keep (camelCase keys, ISO-8601 timestamps).
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from co_reader.anchoring.anchors import Anchor, anchor_from_dict, anchor_to_dict


class SourceKind(str, Enum):
    PAGINATED = "paginated"
    FLOWING = "flowing"


# Source kinds written by earlier releases
LEGACY_SOURCE_KINDS = {"pdf": SourceKind.PAGINATED, "url": SourceKind.FLOWING}


class HighlightCategory(str, Enum):
    """Labels only; categories behave identically"""

    INSIGHT = "insight"
    DEFINITION = "definition"
    QUESTION = "question"


class AIOutputKind(str, Enum):
    CLARIFY = "clarify"
    ASSUMPTIONS = "assumptions"
    QUESTIONS = "questions"
    SYNTHESIS = "synthesis"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_timestamp(value: datetime) -> str:
    return value.isoformat()


def _from_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    # JavaScript Date.toISOString() ends in "Z", which fromisoformat rejects before 3.11
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_source_kind(value: Any) -> SourceKind:
    if isinstance(value, SourceKind):
        return value
    if value in LEGACY_SOURCE_KINDS:
        return LEGACY_SOURCE_KINDS[value]
    return SourceKind(value)


@dataclass
class Document:
    id: str
    title: str
    source_kind: SourceKind
    source_locator: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "sourceKind": self.source_kind.value,
            "sourceLocator": self.source_locator,
            "createdAt": _to_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            source_kind=parse_source_kind(data.get("sourceKind", data.get("sourceType"))),
            source_locator=data.get("sourceLocator", data.get("sourcePath", "")),
            created_at=_from_timestamp(data["createdAt"]),
        )


@dataclass
class Highlight:
    id: str
    document_id: str
    category: HighlightCategory
    text: str
    anchor: Anchor
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "type": self.category.value,
            "text": self.text,
            "anchor": anchor_to_dict(self.anchor),
            "createdAt": _to_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Highlight":
        return cls(
            id=data["id"],
            document_id=data["documentId"],
            category=HighlightCategory(data["type"]),
            text=data.get("text", ""),
            anchor=anchor_from_dict(data["anchor"]),
            created_at=_from_timestamp(data["createdAt"]),
        )


@dataclass
class Note:
    id: str
    highlight_id: str
    content: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "highlightId": self.highlight_id,
            "content": self.content,
            "createdAt": _to_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            highlight_id=data["highlightId"],
            content=data.get("content", ""),
            created_at=_from_timestamp(data["createdAt"]),
        )


@dataclass
class AIOutput:
    id: str
    highlight_id: str
    kind: AIOutputKind
    content: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "highlightId": self.highlight_id,
            "type": self.kind.value,
            "content": self.content,
            "createdAt": _to_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIOutput":
        return cls(
            id=data["id"],
            highlight_id=data["highlightId"],
            kind=AIOutputKind(data["type"]),
            content=data.get("content", ""),
            created_at=_from_timestamp(data["createdAt"]),
        )


@dataclass
class VocabularyEntry:
    id: str
    word: str
    context_sentence: str
    document_id: str
    created_at: datetime
    definition: Optional[str] = None
    user_note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "word": self.word,
            "contextSentence": self.context_sentence,
            "documentId": self.document_id,
            "createdAt": _to_timestamp(self.created_at),
        }
        if self.definition is not None:
            data["definition"] = self.definition
        if self.user_note is not None:
            data["userNote"] = self.user_note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabularyEntry":
        return cls(
            id=data["id"],
            word=data["word"],
            context_sentence=data.get("contextSentence", ""),
            document_id=data["documentId"],
            created_at=_from_timestamp(data["createdAt"]),
            definition=data.get("definition"),
            user_note=data.get("userNote"),
        )
