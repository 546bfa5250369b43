#!/usr/bin/env python3
"""
Unit tests for the annotation store: CRUD, cascades and storage failures.
"""

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from co_reader.anchoring.anchors import FlowingAnchor, PaginatedAnchor
from co_reader.exceptions import StorageError
from co_reader.storage.annotation_store import DOCUMENTS, HIGHLIGHTS, AnnotationStore
from co_reader.storage.backends import InMemoryBackend
from co_reader.storage.models import HighlightCategory, SourceKind


class FakeClock:
    """Advances one second per call"""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class FailingBackend(InMemoryBackend):
    """In-memory backend whose reads or writes can be switched off"""

    def __init__(self):
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.read_only_collections = set()

    def load(self, collection):
        if self.fail_reads:
            raise StorageError(f"cannot read {collection}")
        return super().load(collection)

    def save(self, collection, records):
        if self.fail_writes or collection in self.read_only_collections:
            raise StorageError(f"cannot write {collection}")
        super().save(collection, records)


ANCHOR = FlowingAnchor("article[1]/p[1]", 10, 15, "The quick brown fox")


class AnnotationStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.backend = FailingBackend()
        self.store = AnnotationStore(self.backend, clock=FakeClock())
        self.doc = self.store.create_document("Article", "flowing", "https://example.org/a")


class TestDocuments(AnnotationStoreTestCase):
    def test_create_and_get(self):
        fetched = self.store.get_document(self.doc.id)
        self.assertEqual(fetched, self.doc)
        self.assertEqual(fetched.source_kind, SourceKind.FLOWING)

    def test_legacy_source_kind(self):
        doc = self.store.create_document("Paper", "pdf", "/tmp/paper.pdf")
        self.assertEqual(doc.source_kind, SourceKind.PAGINATED)

    def test_unknown_source_kind(self):
        with self.assertRaises(ValueError):
            self.store.create_document("Book", "epub", "/tmp/book.epub")

    def test_update_title(self):
        updated = self.store.update_document_title(self.doc.id, "Renamed")
        self.assertEqual(updated.title, "Renamed")
        self.assertEqual(self.store.get_document(self.doc.id).title, "Renamed")
        self.assertIsNone(self.store.update_document_title("missing", "x"))

    def test_delete_unknown_document(self):
        self.assertFalse(self.store.delete_document("missing"))
        self.assertEqual(len(self.store.list_documents()), 1)


class TestCascades(AnnotationStoreTestCase):
    def setUp(self):
        super().setUp()
        self.other = self.store.create_document("Other", "paginated", "/tmp/other.pdf")
        self.h1 = self.store.create_highlight(self.doc.id, "insight", "brown", ANCHOR)
        self.h2 = self.store.create_highlight(self.other.id, "question", "fox",
                                              PaginatedAnchor(1, 0, 3, "fox"))
        self.n1 = self.store.save_note(self.h1.id, "colour")
        self.n2 = self.store.save_note(self.h2.id, "animal")
        self.a1 = self.store.save_ai_output(self.h1.id, "clarify", "A colour.")
        self.a2 = self.store.save_ai_output(self.h2.id, "synthesis", "A canid.")
        self.v1 = self.store.create_vocabulary_entry("brown", "The quick brown fox", self.doc.id)

    def test_delete_highlight_cascades_to_its_note_and_outputs(self):
        self.assertTrue(self.store.delete_highlight(self.h1.id))

        self.assertIsNone(self.store.get_highlight(self.h1.id))
        self.assertIsNone(self.store.get_note_by_highlight(self.h1.id))
        self.assertEqual(self.store.ai_outputs_by_highlight(self.h1.id), [])

        self.assertEqual(self.store.get_highlight(self.h2.id), self.h2)
        self.assertEqual(self.store.get_note_by_highlight(self.h2.id), self.n2)
        self.assertEqual(self.store.ai_outputs_by_highlight(self.h2.id), [self.a2])

    def test_failed_highlight_delete_leaves_no_orphans(self):
        self.backend.read_only_collections.add(HIGHLIGHTS)
        with self.assertRaises(StorageError):
            self.store.delete_highlight(self.h1.id)

        # The highlight survives without its dependents, never the reverse
        self.assertEqual(self.store.get_highlight(self.h1.id), self.h1)
        self.assertIsNone(self.store.get_note_by_highlight(self.h1.id))
        self.assertEqual(self.store.ai_outputs_by_highlight(self.h1.id), [])

    def test_failed_document_delete_keeps_document(self):
        self.backend.read_only_collections.add(DOCUMENTS)
        with self.assertRaises(StorageError):
            self.store.delete_document(self.doc.id)

        self.assertEqual(self.store.get_document(self.doc.id), self.doc)
        self.assertEqual(self.store.highlights_by_document(self.doc.id), [])
        self.assertEqual([n.id for n in self.store.list_notes()], [self.n2.id])

    def test_delete_missing_highlight(self):
        self.assertFalse(self.store.delete_highlight("missing"))
        self.assertEqual(len(self.store.list_notes()), 2)

    def test_delete_document_cascades_but_keeps_vocabulary(self):
        self.assertTrue(self.store.delete_document(self.doc.id))

        self.assertIsNone(self.store.get_document(self.doc.id))
        self.assertEqual(self.store.highlights_by_document(self.doc.id), [])
        self.assertEqual([n.id for n in self.store.list_notes()], [self.n2.id])
        self.assertEqual([o.id for o in self.store.list_ai_outputs()], [self.a2.id])
        self.assertEqual(self.store.vocabulary_by_document(self.doc.id), [self.v1])

    def test_explicit_vocabulary_cleanup(self):
        self.store.delete_document(self.doc.id)
        self.assertEqual(self.store.delete_vocabulary_by_document(self.doc.id), 1)
        self.assertEqual(self.store.list_vocabulary(), [])


class TestHighlights(AnnotationStoreTestCase):
    def test_anchor_survives_storage(self):
        highlight = self.store.create_highlight(self.doc.id, "definition", "brown", ANCHOR)
        fetched = self.store.get_highlight(highlight.id)
        self.assertEqual(fetched.anchor, ANCHOR)
        self.assertEqual(fetched.category, HighlightCategory.DEFINITION)
        self.assertEqual(self.backend.collections[HIGHLIGHTS][0]["type"], "definition")

    def test_unknown_category(self):
        with self.assertRaises(ValueError):
            self.store.create_highlight(self.doc.id, "summary", "brown", ANCHOR)

    def test_update_category(self):
        highlight = self.store.create_highlight(self.doc.id, "insight", "brown", ANCHOR)
        self.store.update_highlight_category(highlight.id, "question")
        self.assertEqual(self.store.get_highlight(highlight.id).category, HighlightCategory.QUESTION)

    def test_stats(self):
        self.store.create_highlight(self.doc.id, "insight", "a", ANCHOR)
        self.store.create_highlight(self.doc.id, "insight", "b", ANCHOR)
        self.store.create_highlight(self.doc.id, "question", "c", ANCHOR)
        stats = self.store.highlight_stats(self.doc.id)
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["by_category"], {"insight": 2, "definition": 0, "question": 1})

    def test_malformed_record_is_skipped(self):
        kept = self.store.create_highlight(self.doc.id, "insight", "a", ANCHOR)
        self.backend.collections[HIGHLIGHTS].extend([
            {"id": "broken", "anchor": {"type": "epub"}},
            1,
            "x",
            None,
            {"id": "flat", "documentId": self.doc.id, "type": "insight", "text": "b",
             "anchor": "not-an-object", "createdAt": "2024-01-01T00:00:00Z"},
            {"id": "listed", "documentId": self.doc.id, "type": "insight", "text": "c",
             "anchor": ["flowing"], "createdAt": "2024-01-01T00:00:00Z"},
        ])
        self.assertEqual([h.id for h in self.store.list_highlights()], [kept.id])
        self.assertEqual([h.id for h in self.store.highlights_by_document(self.doc.id)], [kept.id])

    def test_writes_tolerate_malformed_records(self):
        kept = self.store.create_highlight(self.doc.id, "insight", "a", ANCHOR)
        self.store.save_note(kept.id, "first")
        self.backend.collections[HIGHLIGHTS].append(7)
        self.backend.collections["notes"].append("junk")

        self.store.save_note(kept.id, "second")
        self.assertEqual(self.store.get_note_by_highlight(kept.id).content, "second")
        self.assertTrue(self.store.delete_highlight(kept.id))
        self.assertEqual(self.store.list_highlights(), [])
        self.assertEqual(self.backend.collections[HIGHLIGHTS], [7])


class TestNotes(AnnotationStoreTestCase):
    def test_save_note_replaces_existing(self):
        highlight = self.store.create_highlight(self.doc.id, "insight", "brown", ANCHOR)
        first = self.store.save_note(highlight.id, "first")
        second = self.store.save_note(highlight.id, "second")

        notes = self.store.list_notes()
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].content, "second")
        self.assertNotEqual(first.id, second.id)
        self.assertGreater(second.created_at, first.created_at)

    def test_delete_note(self):
        note = self.store.save_note("h", "text")
        self.assertTrue(self.store.delete_note(note.id))
        self.assertFalse(self.store.delete_note(note.id))


class TestAIOutputs(AnnotationStoreTestCase):
    def test_outputs_accumulate(self):
        self.store.save_ai_output("h", "clarify", "one")
        self.store.save_ai_output("h", "questions", "two")
        self.assertEqual([o.content for o in self.store.ai_outputs_by_highlight("h")], ["one", "two"])

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            self.store.save_ai_output("h", "translate", "x")


class TestVocabulary(AnnotationStoreTestCase):
    def test_create_strips_word(self):
        entry = self.store.create_vocabulary_entry("  ephemeral ", "an ephemeral joy", self.doc.id)
        self.assertEqual(entry.word, "ephemeral")
        self.assertTrue(self.store.word_exists("Ephemeral"))
        self.assertFalse(self.store.word_exists("eternal"))

    def test_empty_word_rejected(self):
        with self.assertRaises(ValueError):
            self.store.create_vocabulary_entry("   ", "ctx", self.doc.id)

    def test_update_only_definition_and_note(self):
        entry = self.store.create_vocabulary_entry("laconic", "a laconic reply", self.doc.id)
        updated = self.store.update_vocabulary_entry(entry.id, definition="terse", user_note="see ch. 2")
        self.assertEqual((updated.definition, updated.user_note), ("terse", "see ch. 2"))
        with self.assertRaises(ValueError):
            self.store.update_vocabulary_entry(entry.id, word="other")
        self.assertIsNone(self.store.update_vocabulary_entry("missing", definition="x"))

    def test_search_and_stats(self):
        self.store.create_vocabulary_entry("laconic", "a laconic reply", self.doc.id, definition="terse")
        self.store.create_vocabulary_entry("verbose", "too wordy", "doc-2", user_note="opposite of terse")
        self.store.create_vocabulary_entry("plain", "nothing", "doc-2")

        self.assertEqual({e.word for e in self.store.search_vocabulary("TERSE")}, {"laconic", "verbose"})
        self.assertEqual(self.store.search_vocabulary("  "), [])
        self.assertEqual(self.store.vocabulary_stats(), {
            "total": 3, "with_definitions": 1, "with_notes": 1, "documents_count": 2,
        })

    def test_delete_entry(self):
        entry = self.store.create_vocabulary_entry("word", "ctx", self.doc.id)
        self.assertTrue(self.store.delete_vocabulary_entry(entry.id))
        self.assertIsNone(self.store.get_vocabulary_entry(entry.id))


class TestStorageFailures(AnnotationStoreTestCase):
    def test_reads_degrade_to_empty(self):
        self.store.create_highlight(self.doc.id, "insight", "brown", ANCHOR)
        self.backend.fail_reads = True
        self.assertEqual(self.store.list_documents(), [])
        self.assertEqual(self.store.highlights_by_document(self.doc.id), [])
        self.assertIsNone(self.store.get_document(self.doc.id))
        self.assertEqual(self.store.vocabulary_stats()["total"], 0)

    def test_writes_raise(self):
        self.backend.fail_writes = True
        with self.assertRaises(StorageError):
            self.store.create_highlight(self.doc.id, "insight", "brown", ANCHOR)
        with self.assertRaises(StorageError):
            self.store.save_note("h", "text")

    def test_write_after_failed_read_does_not_wipe(self):
        self.backend.fail_reads = True
        with self.assertRaises(StorageError):
            self.store.create_document("Second", "flowing", "x.html")
        self.backend.fail_reads = False
        self.assertEqual([d.id for d in self.store.list_documents()], [self.doc.id])


if __name__ == "__main__":
    unittest.main()
