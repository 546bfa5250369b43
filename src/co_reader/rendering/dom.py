"""
DOM - Minimal document tree for flowing (HTML) content
Parses article markup into elements and text nodes, computes the structural
paths anchors are addressed by, and resolves those paths again.
"""

import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Dict, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
}

# Content of these is never rendered, so it never takes part in offsets
SKIPPED_ELEMENTS = {"script", "style", "template", "noscript"}

PATH_STEP_PATTERN = re.compile(r"^([a-z][a-z0-9-]*)(?:\[(\d+)\])?$")


class Element:
    """An element node; ``tag`` is None for the document root"""

    def __init__(self, tag: Optional[str], attrs: Optional[Dict[str, str]] = None,
                 parent: Optional["Element"] = None):
        self.tag = tag
        self.attrs = attrs or {}
        self.parent = parent
        self.children: List["Node"] = []

    @property
    def is_root(self) -> bool:
        return self.tag is None

    def append(self, node: "Node") -> "Node":
        node.parent = self
        self.children.append(node)
        return node

    def element_children(self) -> List["Element"]:
        return [child for child in self.children if isinstance(child, Element)]

    def __repr__(self):
        return f"Element({self.tag or '#document'})"


class TextNode:
    """A run of character data"""

    def __init__(self, data: str, parent: Optional[Element] = None):
        self.data = data
        self.parent = parent

    def __len__(self):
        return len(self.data)

    def __repr__(self):
        return f"TextNode({self.data[:20]!r})"


Node = Union[Element, TextNode]


class _TreeBuilder(HTMLParser):
    """Feeds html.parser events into an Element tree"""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.root = Element(None)
        self.stack: List[Element] = [self.root]
        self.skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if self.skip_depth:
            if tag in SKIPPED_ELEMENTS:
                self.skip_depth += 1
            return
        if tag in SKIPPED_ELEMENTS:
            self.skip_depth = 1
            return
        element = Element(tag, {k: (v or "") for k, v in attrs})
        self.stack[-1].append(element)
        if tag not in VOID_ELEMENTS:
            self.stack.append(element)

    def handle_startendtag(self, tag, attrs):
        if self.skip_depth or tag in SKIPPED_ELEMENTS:
            return
        self.stack[-1].append(Element(tag, {k: (v or "") for k, v in attrs}))

    def handle_endtag(self, tag):
        if self.skip_depth:
            if tag in SKIPPED_ELEMENTS:
                self.skip_depth -= 1
            return
        # Close up to the nearest open element with this tag; stray end tags are ignored
        for depth in range(len(self.stack) - 1, 0, -1):
            if self.stack[depth].tag == tag:
                del self.stack[depth:]
                return

    def handle_data(self, data):
        if self.skip_depth or not data:
            return
        parent = self.stack[-1]
        # Adjacent character data merges into one text node, as in a browser DOM
        if parent.children and isinstance(parent.children[-1], TextNode):
            parent.children[-1].data += data
        else:
            parent.append(TextNode(data))


def parse_html(markup: str) -> Element:
    """
    Parse markup into a document tree

    Args:
        markup: HTML document or fragment

    Returns:
        The document root (an Element whose tag is None)
    """
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def iter_text_nodes(node: Node) -> Iterator[TextNode]:
    """All text nodes under ``node`` in document order"""
    if isinstance(node, TextNode):
        yield node
        return
    for child in node.children:
        yield from iter_text_nodes(child)


def text_content(node: Node) -> str:
    """Concatenated text of every descendant text node"""
    return "".join(text.data for text in iter_text_nodes(node))


def text_node_spans(element: Element) -> List[Tuple[TextNode, int, int]]:
    """Each descendant text node with its [start, end) in the concatenated text"""
    spans = []
    offset = 0
    for text in iter_text_nodes(element):
        spans.append((text, offset, offset + len(text)))
        offset += len(text)
    return spans


def ancestors(node: Node) -> List[Element]:
    """Parents of ``node`` from the nearest up to the document root"""
    chain = []
    current = node.parent
    while current is not None:
        chain.append(current)
        current = current.parent
    return chain


def common_ancestor(a: Node, b: Node) -> Optional[Element]:
    """Nearest element containing both nodes, None when they share no tree"""
    chain_a = ([a] if isinstance(a, Element) else []) + ancestors(a)
    chain_b = set(id(n) for n in ([b] if isinstance(b, Element) else []) + ancestors(b))
    for candidate in chain_a:
        if id(candidate) in chain_b:
            return candidate
    return None


def element_path(element: Element) -> str:
    """
    Structural path of an element, e.g. ``html[1]/body[1]/article[1]``

    Each step is the tag name and the 1-based position among preceding
    siblings with the same tag, walked from the document root.
    """
    parts = []
    current = element
    while current is not None and not current.is_root:
        index = 1
        if current.parent is not None:
            for sibling in current.parent.element_children():
                if sibling is current:
                    break
                if sibling.tag == current.tag:
                    index += 1
        parts.append(f"{current.tag}[{index}]")
        current = current.parent
    return "/".join(reversed(parts))


def resolve_element_path(root: Element, path: str) -> Optional[Element]:
    """Find the element a path points to, or None when the markup changed"""
    steps = [step for step in path.strip().strip("/").split("/") if step]
    if not steps:
        return None

    current = root
    for step in steps:
        match = PATH_STEP_PATTERN.match(step.lower())
        if not match:
            logger.debug(f"Malformed element path step {step!r} in {path!r}")
            return None
        tag, index = match.group(1), int(match.group(2) or 1)
        same_tag = [child for child in current.element_children() if child.tag == tag]
        if index < 1 or index > len(same_tag):
            return None
        current = same_tag[index - 1]
    return current


@dataclass
class DomRange:
    """A live selection: boundary points inside text nodes, node-local offsets"""

    start_node: TextNode
    start_offset: int
    end_node: TextNode
    end_offset: int

    @property
    def collapsed(self) -> bool:
        return self.start_node is self.end_node and self.start_offset == self.end_offset

    def common_ancestor(self) -> Optional[Element]:
        return common_ancestor(self.start_node, self.end_node)

    def offsets_in(self, container: Element) -> Optional[Tuple[int, int]]:
        """Boundary points as offsets into the container's concatenated text"""
        start = end = None
        for node, node_start, _ in text_node_spans(container):
            if node is self.start_node:
                start = node_start + self.start_offset
            if node is self.end_node:
                end = node_start + self.end_offset
        if start is None or end is None:
            return None
        return start, end

    def to_string(self) -> str:
        container = self.common_ancestor()
        if container is None:
            return ""
        offsets = self.offsets_in(container)
        if offsets is None:
            return ""
        return text_content(container)[offsets[0]:offsets[1]]


def find_text(root: Element, needle: str, occurrence: int = 0) -> Optional[DomRange]:
    """
    Select ``needle`` inside a single text node, the way a user drag would

    Returns None when it does not occur often enough.
    """
    seen = 0
    for node in iter_text_nodes(root):
        index = node.data.find(needle)
        while index != -1:
            if seen == occurrence:
                return DomRange(node, index, node, index + len(needle))
            seen += 1
            index = node.data.find(needle, index + 1)
    return None
