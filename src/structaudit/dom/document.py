# src/structaudit/dom/document.py
import logging
from typing import Dict, Iterator, List, Optional

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from ..model import DOCUMENT_ROOT, RecordReference

logger = logging.getLogger(__name__)

RECORD_TABLE_ATTR = "data-record-table"
RECORD_COLUMN_ATTR = "data-record-column"
RECORD_UID_ATTR = "data-record-uid"


class MarkupElement:
    """
    Narrow, read-only view on a single element of a MarkupDocument.

    The structure services only talk to this interface, never to
    BeautifulSoup directly. ``element_id`` is stable for the lifetime of the
    owning document and is what findings are keyed by.
    """

    __slots__ = ("_tag", "element_id", "document")

    def __init__(self, tag: Tag, element_id: int, document: "MarkupDocument"):
        self._tag = tag
        self.element_id = element_id
        self.document = document

    def __repr__(self) -> str:
        return f"<MarkupElement #{self.element_id} {self.tag_name}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MarkupElement):
            return NotImplemented
        return self.document is other.document and self.element_id == other.element_id

    def __hash__(self) -> int:
        return hash((id(self.document), self.element_id))

    @property
    def tag_name(self) -> str:
        return (self._tag.name or "").lower()

    def attr(self, name: str) -> Optional[str]:
        """Returns an attribute value as a string, or None when absent."""
        value = self._tag.get(name)
        if value is None:
            return None
        # Multi-valued attributes (class, rel, ...) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def has_attr(self, name: str) -> bool:
        return self._tag.has_attr(name)

    def role(self) -> str:
        """Explicit role attribute, trimmed and lower-cased ("" when absent)."""
        return (self.attr("role") or "").strip().lower()

    def text(self) -> str:
        """Text content with runs of whitespace collapsed and ends trimmed."""
        return " ".join(self._tag.get_text().split())

    def ancestors(self) -> Iterator["MarkupElement"]:
        """Yields enclosing elements, nearest first, up to (excluding) the document."""
        for parent in self._tag.parents:
            if isinstance(parent, BeautifulSoup):
                break
            element = self.document._wrap(parent)
            if element is not None:
                yield element

    def record_reference(self) -> Optional[RecordReference]:
        table = self.attr(RECORD_TABLE_ATTR)
        uid = self.attr(RECORD_UID_ATTR)
        if not table or uid is None:
            return None
        try:
            uid_value = int(uid.strip())
        except ValueError:
            logger.debug("Ignoring non-numeric record uid %r on %r", uid, self)
            return None
        return RecordReference(table=table, column=self.attr(RECORD_COLUMN_ATTR), uid=uid_value)


class MarkupDocument:
    """
    Parsed snapshot of a rendered page.

    Every element gets an integer id in document order starting at 1; the
    document itself is ``DOCUMENT_ROOT`` (0). Ids are only meaningful within
    one document instance.
    """

    def __init__(self, html: Optional[str], url: Optional[str] = None):
        self.url = url
        # Basic cleanup of potentially dirty HTML (e.g., BOM)
        clean_html = (html or "").replace('\ufeff', '').strip()
        self._soup = BeautifulSoup(clean_html, 'html.parser')

        self._ids: Dict[int, int] = {}
        self._elements: List[MarkupElement] = []
        self._by_html_id: Dict[str, MarkupElement] = {}

        for tag in self._soup.find_all(True):
            element = MarkupElement(tag, len(self._elements) + 1, self)
            self._ids[id(tag)] = element.element_id
            self._elements.append(element)

            html_id = tag.get("id")
            # Like getElementById: the first element carrying the id wins
            if isinstance(html_id, str) and html_id and html_id not in self._by_html_id:
                self._by_html_id[html_id] = element

        logger.debug("Parsed document %s with %d elements", url or "<inline>", len(self._elements))

    @property
    def element_id(self) -> int:
        return DOCUMENT_ROOT

    def __len__(self) -> int:
        return len(self._elements)

    def _wrap(self, tag: Tag) -> Optional[MarkupElement]:
        element_id = self._ids.get(id(tag))
        if element_id is None:
            return None
        return self._elements[element_id - 1]

    def element(self, element_id: int) -> Optional[MarkupElement]:
        if 1 <= element_id <= len(self._elements):
            return self._elements[element_id - 1]
        return None

    def select(self, selector: str) -> List[MarkupElement]:
        """
        Returns the elements matching a CSS selector in document order.

        An invalid selector or unparseable input yields an empty list instead
        of failing the analysis pass.
        """
        try:
            tags = self._soup.select(selector)
        except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
            logger.warning("Selector %r could not be applied: %s", selector, e)
            return []
        return [el for el in (self._wrap(tag) for tag in tags) if el is not None]

    def get_element_by_id(self, html_id: str) -> Optional[MarkupElement]:
        return self._by_html_id.get(html_id)
