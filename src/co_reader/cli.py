#!/usr/bin/env python3
"""
Co-Reader - Command Line Interface
Register documents, anchor highlights to their text and check where the
stored highlights land in the current rendering.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

from co_reader.anchoring.builder import build_flowing_anchor, build_paginated_anchor
from co_reader.anchoring.geometry import ContainerMetrics
from co_reader.anchoring.resolver import FlowingRenderState, PaginatedRenderState
from co_reader.config import OFFSET_POLICIES, AnchoringConfig, LayoutConfig
from co_reader.exceptions import StorageError
from co_reader.overlay import resolve_highlights
from co_reader.rendering.dom import find_text, parse_html
from co_reader.rendering.pdf_export import export_highlighted_pdf
from co_reader.rendering.pdf_text_layer import PdfTextLayer
from co_reader.rendering.text_layout import MonospaceLayout
from co_reader.storage.annotation_store import AnnotationStore
from co_reader.storage.backends import JsonFileBackend
from co_reader.storage.models import Document, HighlightCategory, SourceKind
from co_reader.utils.file_utils import read_text_file

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Co-Reader anchoring CLI")
    parser.add_argument("--store", required=True, help="Directory holding the annotation collections")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    sub = parser.add_subparsers(dest="command", required=True)

    add_doc = sub.add_parser("add-document", help="Register a PDF or HTML document")
    add_doc.add_argument("source", help="Path to the PDF or HTML file")
    add_doc.add_argument("--title", help="Document title (defaults to the file name)")

    highlight = sub.add_parser("highlight", help="Anchor a passage of a document as a highlight")
    highlight.add_argument("document_id")
    highlight.add_argument("text", help="Exact text to highlight")
    highlight.add_argument("--category", default=HighlightCategory.INSIGHT.value,
                           choices=[c.value for c in HighlightCategory])
    highlight.add_argument("--page", type=int, help="1-based page number (PDF documents)")
    highlight.add_argument("--note", help="Note to attach to the highlight")

    resolve = sub.add_parser("resolve", help="Resolve a document's highlights in the current rendering")
    resolve.add_argument("document_id")
    resolve.add_argument("--scale", type=float, default=1.5, help="PDF zoom level")
    resolve.add_argument("--font-size", type=float, default=LayoutConfig.font_size)
    resolve.add_argument("--line-height", type=float, default=LayoutConfig.line_height)
    resolve.add_argument("--width", type=float, default=LayoutConfig.container_width,
                         help="Reader pane width in pixels")
    resolve.add_argument("--offset-policy", choices=OFFSET_POLICIES, default=AnchoringConfig.offset_policy)
    resolve.add_argument("--export-json", help="Write resolved shapes to a JSON file")
    resolve.add_argument("--output-pdf", help="Write a copy of the PDF with highlights embedded")
    return parser


def _source_kind_for(path: Path) -> SourceKind:
    return SourceKind.PAGINATED if path.suffix.lower() == ".pdf" else SourceKind.FLOWING


def _open_flowing(document: Document, layout_config: Optional[LayoutConfig] = None) -> Optional[Tuple[Any, Any]]:
    """Parse and lay out an HTML source; None when the file cannot be read"""
    try:
        markup = read_text_file(document.source_locator)
    except OSError as e:
        logger.error(f"Error reading {document.source_locator}: {e}")
        return None
    root = parse_html(markup)
    return root, MonospaceLayout(root, layout_config)


def cmd_add_document(store: AnnotationStore, args) -> int:
    source = Path(args.source)
    if not source.exists():
        print(f"Error: File does not exist: {source}")
        return 1
    document = store.create_document(args.title or source.stem, _source_kind_for(source).value, str(source.resolve()))
    print(f"Registered {document.source_kind.value} document {document.id}: {document.title}")
    return 0


def cmd_highlight(store: AnnotationStore, args) -> int:
    document = store.get_document(args.document_id)
    if document is None:
        print(f"Error: Unknown document: {args.document_id}")
        return 1

    if document.source_kind == SourceKind.PAGINATED:
        if not args.page:
            print("Error: --page is required for PDF documents")
            return 1
        text_layer = PdfTextLayer(document.source_locator)
        if not text_layer.open_pdf():
            print(f"Error: Cannot open PDF: {document.source_locator}")
            return 1
        try:
            anchor = build_paginated_anchor(args.page, args.text, text_layer.page_text(args.page))
        finally:
            text_layer.close_pdf()
    else:
        opened = _open_flowing(document)
        if opened is None:
            print(f"Error: Cannot read HTML source: {document.source_locator}")
            return 1
        root, _ = opened
        selection = find_text(root, args.text)
        anchor = build_flowing_anchor(selection) if selection else None

    if anchor is None:
        print(f"Error: Could not anchor {args.text!r} in {document.title}")
        return 1

    highlight = store.create_highlight(document.id, args.category, args.text, anchor)
    if args.note:
        store.save_note(highlight.id, args.note)
    print(f"Created {highlight.category.value} highlight {highlight.id}")
    return 0


def cmd_resolve(store: AnnotationStore, args) -> int:
    document = store.get_document(args.document_id)
    if document is None:
        print(f"Error: Unknown document: {args.document_id}")
        return 1

    config = AnchoringConfig(offset_policy=args.offset_policy)
    highlights = store.highlights_by_document(document.id)
    print(f"Resolving {len(highlights)} highlights for: {document.title}")

    if document.source_kind == SourceKind.PAGINATED:
        text_layer = PdfTextLayer(document.source_locator, separator=config.page_separator)
        if not text_layer.open_pdf():
            print(f"Error: Cannot open PDF: {document.source_locator}")
            return 1
        try:
            state = PaginatedRenderState(pages=text_layer.render_pages(scale=args.scale))
        finally:
            text_layer.close_pdf()
    else:
        layout_config = LayoutConfig(font_size=args.font_size, line_height=args.line_height,
                                     container_width=args.width)
        opened = _open_flowing(document, layout_config)
        if opened is None:
            print(f"Error: Cannot read HTML source: {document.source_locator}")
            return 1
        root, layout = opened
        state = FlowingRenderState(root=root, layout=layout)

    result = resolve_highlights(highlights, state, ContainerMetrics(), config)
    for highlight in highlights:
        preview = highlight.text[:50]
        if highlight.id in result.shapes:
            print(f"  ✅ [{highlight.category.value}] {preview!r}: {len(result.shapes[highlight.id])} rects")
        else:
            print(f"  ⏭️  [{highlight.category.value}] {preview!r}: suppressed")
    print(f"Resolved {len(result.shapes)}, suppressed {len(result.suppressed)}")

    if args.export_json:
        payload = {
            "documentId": document.id,
            "shapes": {hid: [r.to_dict() for r in rects] for hid, rects in result.shapes.items()},
            "suppressed": result.suppressed,
        }
        Path(args.export_json).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Exported shapes to {args.export_json}")

    if args.output_pdf:
        if document.source_kind != SourceKind.PAGINATED:
            print("Warning: --output-pdf only applies to PDF documents")
        else:
            notes = {note.highlight_id: note.content for note in store.list_notes()}
            if not export_highlighted_pdf(document.source_locator, highlights, notes, args.output_pdf, config):
                print("Error: No highlights could be embedded")
                return 1
            print(f"Saved highlighted PDF to {args.output_pdf}")
    return 0


COMMANDS = {
    "add-document": cmd_add_document,
    "highlight": cmd_highlight,
    "resolve": cmd_resolve,
}


def main(argv=None) -> int:
    """Command line interface main function"""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    logger.debug(f"Using annotation store at {args.store}")
    store = AnnotationStore(JsonFileBackend(args.store))
    try:
        return COMMANDS[args.command](store, args)
    except StorageError as e:
        print(f"Error: Storage unavailable: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
