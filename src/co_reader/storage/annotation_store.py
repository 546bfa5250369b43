"""
Annotation Store - Documents, highlights, notes, AI outputs and vocabulary

The store is the only writer of these collections. Deletes cascade:
document -> highlights -> note and AI outputs. Vocabulary entries are never
removed together with their document; they outlive the source text.

Persistence failures surface differently for reads and writes: a write
raises StorageError to the caller, a read logs a warning and returns an
empty result so the reader keeps working on missing data.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, TypeVar

from co_reader.anchoring.anchors import Anchor
from co_reader.exceptions import StorageError
from co_reader.storage.backends import Record, StorageBackend
from co_reader.storage.models import (
    AIOutput,
    AIOutputKind,
    Document,
    Highlight,
    HighlightCategory,
    Note,
    VocabularyEntry,
    parse_source_kind,
    utc_now,
)

logger = logging.getLogger(__name__)

DOCUMENTS = "documents"
HIGHLIGHTS = "highlights"
NOTES = "notes"
AI_OUTPUTS = "ai_outputs"
VOCABULARY = "vocabulary"

VOCABULARY_UPDATABLE_FIELDS = {"definition": "definition", "user_note": "userNote"}

T = TypeVar("T")


def _new_id() -> str:
    return str(uuid.uuid4())


class AnnotationStore:
    """CRUD over the annotation collections of one persistence backend"""

    def __init__(self, backend: StorageBackend, clock: Callable = utc_now,
                 id_factory: Callable[[], str] = _new_id):
        self.backend = backend
        self.clock = clock
        self.id_factory = id_factory

    # --- plumbing ---

    def _read(self, collection: str, decode: Callable[[Record], T]) -> List[T]:
        """Decoded records of a collection; degrades to [] when storage fails"""
        try:
            records = self.backend.load(collection)
        except StorageError as e:
            logger.warning(f"Reading {collection} failed, returning no records: {e}")
            return []

        items = []
        for record in records:
            if not isinstance(record, dict):
                logger.warning(f"Skipping malformed {collection} record: {record!r}")
                continue
            try:
                items.append(decode(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {collection} record {record.get('id', '?')}: {e}")
        return items

    def _load_for_write(self, collection: str) -> List[Record]:
        # Writes must not degrade: saving after a failed read would wipe the collection
        return self.backend.load(collection)

    def _write(self, collection: str, records: List[Record]):
        try:
            self.backend.save(collection, records)
        except StorageError as e:
            logger.error(f"Writing {collection} failed: {e}")
            raise

    def _remove_where(self, collection: str, predicate: Callable[[Record], bool]) -> List[Record]:
        """Delete matching records and return them; non-object entries never match"""
        records = self._load_for_write(collection)
        removed = [r for r in records if isinstance(r, dict) and predicate(r)]
        if removed:
            self._write(collection, [r for r in records if not (isinstance(r, dict) and predicate(r))])
        return removed

    def _exists(self, collection: str, record_id: str) -> bool:
        return any(isinstance(r, dict) and r.get("id") == record_id for r in self._load_for_write(collection))

    def _update_record(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Optional[Record]:
        records = self._load_for_write(collection)
        for record in records:
            if isinstance(record, dict) and record.get("id") == record_id:
                record.update(changes)
                self._write(collection, records)
                return record
        return None

    def _append(self, collection: str, record: Record):
        records = self._load_for_write(collection)
        records.append(record)
        self._write(collection, records)

    # --- documents ---

    def create_document(self, title: str, source_kind: str, source_locator: str) -> Document:
        document = Document(
            id=self.id_factory(),
            title=title,
            source_kind=parse_source_kind(source_kind),
            source_locator=source_locator,
            created_at=self.clock(),
        )
        self._append(DOCUMENTS, document.to_dict())
        logger.info(f"Created {document.source_kind.value} document {document.id}: {title}")
        return document

    def list_documents(self) -> List[Document]:
        return self._read(DOCUMENTS, Document.from_dict)

    def get_document(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.list_documents() if d.id == document_id), None)

    def update_document_title(self, document_id: str, title: str) -> Optional[Document]:
        record = self._update_record(DOCUMENTS, document_id, {"title": title})
        return Document.from_dict(record) if record else None

    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and, in cascade, its highlights with their notes
        and AI outputs. Vocabulary entries of the document are kept.

        Returns:
            True if the document existed
        """
        if not self._exists(DOCUMENTS, document_id):
            return False

        # Dependents are removed before the records they point at
        highlight_ids = {
            r.get("id") for r in self._load_for_write(HIGHLIGHTS)
            if isinstance(r, dict) and r.get("documentId") == document_id
        }
        self._cascade_highlights(highlight_ids)
        self._remove_where(HIGHLIGHTS, lambda r: r.get("id") in highlight_ids)
        self._remove_where(DOCUMENTS, lambda r: r.get("id") == document_id)
        logger.info(f"Deleted document {document_id} with {len(highlight_ids)} highlights")
        return True

    # --- highlights ---

    def create_highlight(self, document_id: str, category: str, text: str, anchor: Anchor) -> Highlight:
        """
        Store a new highlight

        The anchor is stored as given; whether it resolves in the current
        rendering is not checked here.

        Raises:
            ValueError: unknown category
            StorageError: the highlight could not be persisted
        """
        highlight = Highlight(
            id=self.id_factory(),
            document_id=document_id,
            category=HighlightCategory(category),
            text=text,
            anchor=anchor,
            created_at=self.clock(),
        )
        self._append(HIGHLIGHTS, highlight.to_dict())
        return highlight

    def list_highlights(self) -> List[Highlight]:
        return self._read(HIGHLIGHTS, Highlight.from_dict)

    def highlights_by_document(self, document_id: str) -> List[Highlight]:
        return [h for h in self.list_highlights() if h.document_id == document_id]

    def get_highlight(self, highlight_id: str) -> Optional[Highlight]:
        return next((h for h in self.list_highlights() if h.id == highlight_id), None)

    def update_highlight_category(self, highlight_id: str, category: str) -> Optional[Highlight]:
        record = self._update_record(HIGHLIGHTS, highlight_id, {"type": HighlightCategory(category).value})
        return Highlight.from_dict(record) if record else None

    def delete_highlight(self, highlight_id: str) -> bool:
        """
        Delete a highlight together with its note and AI outputs

        Returns:
            True if a highlight was found and removed
        """
        if not self._exists(HIGHLIGHTS, highlight_id):
            return False
        self._cascade_highlights({highlight_id})
        self._remove_where(HIGHLIGHTS, lambda r: r.get("id") == highlight_id)
        return True

    def _cascade_highlights(self, highlight_ids):
        if not highlight_ids:
            return
        self._remove_where(NOTES, lambda r: r.get("highlightId") in highlight_ids)
        self._remove_where(AI_OUTPUTS, lambda r: r.get("highlightId") in highlight_ids)

    def highlight_stats(self, document_id: Optional[str] = None) -> Dict[str, Any]:
        """Highlight count, overall and per category"""
        highlights = self.highlights_by_document(document_id) if document_id else self.list_highlights()
        by_category = {category.value: 0 for category in HighlightCategory}
        for highlight in highlights:
            by_category[highlight.category.value] += 1
        return {"total": len(highlights), "by_category": by_category}

    # --- notes ---

    def save_note(self, highlight_id: str, content: str) -> Note:
        """
        Create or replace the note of a highlight

        A highlight has at most one note; saving again replaces the existing
        note's content, identifier and timestamp.
        """
        note = Note(id=self.id_factory(), highlight_id=highlight_id, content=content, created_at=self.clock())
        records = [r for r in self._load_for_write(NOTES)
                   if not (isinstance(r, dict) and r.get("highlightId") == highlight_id)]
        records.append(note.to_dict())
        self._write(NOTES, records)
        return note

    def list_notes(self) -> List[Note]:
        return self._read(NOTES, Note.from_dict)

    def get_note_by_highlight(self, highlight_id: str) -> Optional[Note]:
        return next((n for n in self.list_notes() if n.highlight_id == highlight_id), None)

    def delete_note(self, note_id: str) -> bool:
        return bool(self._remove_where(NOTES, lambda r: r.get("id") == note_id))

    # --- AI outputs ---

    def save_ai_output(self, highlight_id: str, kind: str, content: str) -> AIOutput:
        output = AIOutput(
            id=self.id_factory(),
            highlight_id=highlight_id,
            kind=AIOutputKind(kind),
            content=content,
            created_at=self.clock(),
        )
        self._append(AI_OUTPUTS, output.to_dict())
        return output

    def list_ai_outputs(self) -> List[AIOutput]:
        return self._read(AI_OUTPUTS, AIOutput.from_dict)

    def ai_outputs_by_highlight(self, highlight_id: str) -> List[AIOutput]:
        return [o for o in self.list_ai_outputs() if o.highlight_id == highlight_id]

    def delete_ai_output(self, output_id: str) -> bool:
        return bool(self._remove_where(AI_OUTPUTS, lambda r: r.get("id") == output_id))

    # --- vocabulary ---

    def create_vocabulary_entry(self, word: str, context_sentence: str, document_id: str,
                                user_note: Optional[str] = None,
                                definition: Optional[str] = None) -> VocabularyEntry:
        word = word.strip()
        if not word:
            raise ValueError("Vocabulary word must not be empty")
        entry = VocabularyEntry(
            id=self.id_factory(),
            word=word,
            context_sentence=context_sentence,
            document_id=document_id,
            created_at=self.clock(),
            definition=definition,
            user_note=user_note,
        )
        self._append(VOCABULARY, entry.to_dict())
        return entry

    def list_vocabulary(self) -> List[VocabularyEntry]:
        return self._read(VOCABULARY, VocabularyEntry.from_dict)

    def vocabulary_by_document(self, document_id: str) -> List[VocabularyEntry]:
        return [v for v in self.list_vocabulary() if v.document_id == document_id]

    def get_vocabulary_entry(self, entry_id: str) -> Optional[VocabularyEntry]:
        return next((v for v in self.list_vocabulary() if v.id == entry_id), None)

    def update_vocabulary_entry(self, entry_id: str, **updates) -> Optional[VocabularyEntry]:
        """
        Set the definition and/or user note of an entry

        Raises:
            ValueError: any other field is passed
        """
        unknown = set(updates) - set(VOCABULARY_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update vocabulary fields: {sorted(unknown)}")
        changes = {VOCABULARY_UPDATABLE_FIELDS[key]: value for key, value in updates.items()}
        record = self._update_record(VOCABULARY, entry_id, changes)
        return VocabularyEntry.from_dict(record) if record else None

    def delete_vocabulary_entry(self, entry_id: str) -> bool:
        return bool(self._remove_where(VOCABULARY, lambda r: r.get("id") == entry_id))

    def delete_vocabulary_by_document(self, document_id: str) -> int:
        """Explicitly drop a document's vocabulary; deleting the document never does"""
        return len(self._remove_where(VOCABULARY, lambda r: r.get("documentId") == document_id))

    def word_exists(self, word: str) -> bool:
        normalized = word.strip().lower()
        return any(v.word.lower() == normalized for v in self.list_vocabulary())

    def search_vocabulary(self, query: str) -> List[VocabularyEntry]:
        """Entries whose word, context, note or definition contains the query"""
        normalized = query.strip().lower()
        if not normalized:
            return []
        return [
            entry for entry in self.list_vocabulary()
            if any(normalized in (field or "").lower()
                   for field in (entry.word, entry.context_sentence, entry.user_note, entry.definition))
        ]

    def vocabulary_stats(self) -> Dict[str, int]:
        entries = self.list_vocabulary()
        return {
            "total": len(entries),
            "with_definitions": sum(1 for e in entries if e.definition),
            "with_notes": sum(1 for e in entries if e.user_note),
            "documents_count": len({e.document_id for e in entries}),
        }
