# src/structaudit/services/heading_structure_service.py
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..dom.document import MarkupDocument, MarkupElement
from ..managers.error_registry import ErrorRegistry
from ..model import (
    DOCUMENT_ROOT,
    AggregatedFinding,
    HeadingNode,
    Severity,
    StructureTag,
    flatten_nodes,
)

logger = logging.getLogger(__name__)

HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"

RULE_MISSING_H1 = "headingStructure.error.missingH1"
RULE_MULTIPLE_H1 = "headingStructure.error.multipleH1"
RULE_EMPTY_HEADING = "headingStructure.error.emptyHeadings"
RULE_SKIPPED_LEVEL = "headingStructure.error.skippedLevel"

HEADING_RULES = [RULE_MISSING_H1, RULE_MULTIPLE_H1, RULE_EMPTY_HEADING, RULE_SKIPPED_LEVEL]


class _TreeState:
    """Scratch state of one tree-building pass."""

    def __init__(self):
        self.root_nodes: List[HeadingNode] = []
        self.parent_stack: List[HeadingNode] = []
        # parent level -> child levels that were reached by skipping
        self.skipped_combinations: Dict[int, Set[int]] = {}


class HeadingStructureService:
    """
    Builds the heading outline of a document and validates it.

    Findings are written to the injected ErrorRegistry under
    ``StructureTag.HEADINGS``; every validation pass first clears that tag.
    """

    def __init__(self, registry: ErrorRegistry):
        self.registry = registry

    # --- Selection ---

    def select_elements(self, document: MarkupDocument) -> List[MarkupElement]:
        return document.select(HEADING_SELECTOR)

    @staticmethod
    def extract_heading_level(element: MarkupElement) -> int:
        """Level from the tag name (h1 -> 1); 0 when the element is not a heading."""
        tag_name = element.tag_name
        if len(tag_name) == 2 and tag_name[0] == "h" and tag_name[1] in "123456":
            return int(tag_name[1])
        return 0

    def _valid_headings(self, headings: Sequence[MarkupElement]) -> List[Tuple[MarkupElement, int]]:
        result = []
        for element in headings:
            level = self.extract_heading_level(element)
            if level == 0:
                logger.debug("Ignoring %r: no heading level", element)
                continue
            result.append((element, level))
        return result

    # --- Validation ---

    def build_error_list(self, headings: Sequence[MarkupElement]) -> List[AggregatedFinding]:
        """Runs all heading rules and returns the aggregated heading findings."""
        self.detect_all_heading_errors(headings)
        return self.registry.get_aggregated_by_tag(StructureTag.HEADINGS)

    def detect_all_heading_errors(self, headings: Sequence[MarkupElement]) -> None:
        with self.registry.transaction(StructureTag.HEADINGS):
            self._detect(headings)

    def _detect(self, headings: Sequence[MarkupElement], tree: Optional[List[HeadingNode]] = None) -> None:
        valid = self._valid_headings(headings)
        h1_elements = [element for element, level in valid if level == 1]

        self._validate_h1_presence(h1_elements)
        self._validate_single_h1(h1_elements)
        self._validate_heading_content(valid)
        self._validate_heading_hierarchy(tree if tree is not None else self._build_tree(headings))

    def _validate_h1_presence(self, h1_elements: List[MarkupElement]) -> None:
        if not h1_elements:
            self.registry.add(
                DOCUMENT_ROOT,
                ErrorRegistry.create_finding(RULE_MISSING_H1, Severity.ERROR, StructureTag.HEADINGS)
            )

    def _validate_single_h1(self, h1_elements: List[MarkupElement]) -> None:
        if len(h1_elements) <= 1:
            return

        # Every h1 is highlighted, but only the ones beyond the first are counted
        for index, element in enumerate(h1_elements):
            self.registry.add(
                element.element_id,
                ErrorRegistry.create_finding(
                    RULE_MULTIPLE_H1, Severity.WARNING, StructureTag.HEADINGS, counted=index > 0
                )
            )

    def _validate_heading_content(self, headings: List[Tuple[MarkupElement, int]]) -> None:
        empty_heading = ErrorRegistry.create_finding(RULE_EMPTY_HEADING, Severity.ERROR, StructureTag.HEADINGS)
        for element, _ in headings:
            if not element.text():
                self.registry.add(element.element_id, empty_heading)

    def _validate_heading_hierarchy(self, tree: List[HeadingNode]) -> None:
        skipped_level = ErrorRegistry.create_finding(RULE_SKIPPED_LEVEL, Severity.ERROR, StructureTag.HEADINGS)
        flagged = [node for node in flatten_nodes(tree) if node.skipped_levels > 0]
        for node in flagged:
            self.registry.add(node.element_id, skipped_level)
        if flagged:
            logger.debug("Found %d heading(s) with skipped levels", len(flagged))

    # --- Tree construction ---

    def build_heading_tree(self, headings: Sequence[MarkupElement]) -> List[HeadingNode]:
        """
        Builds the outline and attaches the heading findings currently in
        the registry to each node.
        """
        roots = self._build_tree(headings)
        self._attach_findings(roots)
        return roots

    def _attach_findings(self, roots: List[HeadingNode]) -> None:
        for node in flatten_nodes(roots):
            node.findings = self.registry.get_by_tag(node.element_id, StructureTag.HEADINGS)

    def _build_tree(self, headings: Sequence[MarkupElement]) -> List[HeadingNode]:
        state = _TreeState()

        for element, level in self._valid_headings(headings):
            parent_level = self._find_hierarchical_parent_level(level, state.parent_stack)
            direct_skips = max(0, level - self._expected_level(state.parent_stack))
            visual_skips = self._determine_skipped_levels(
                level, parent_level, direct_skips, state.skipped_combinations
            )

            node = HeadingNode(
                element_id=element.element_id,
                tag_name=element.tag_name,
                level=level,
                label=element.text(),
                skipped_levels=visual_skips,
                record=element.record_reference()
            )
            self._add_node_to_tree(node, state)

        return state.root_nodes

    @staticmethod
    def _find_hierarchical_parent_level(level: int, parent_stack: List[HeadingNode]) -> int:
        for parent in reversed(parent_stack):
            if parent.level < level:
                return parent.level
        return 0

    @staticmethod
    def _expected_level(parent_stack: List[HeadingNode]) -> int:
        if not parent_stack:
            return 1
        return parent_stack[-1].level + 1

    @staticmethod
    def _determine_skipped_levels(
            level: int,
            parent_level: int,
            direct_skips: int,
            skipped_combinations: Dict[int, Set[int]]
    ) -> int:
        """
        Number of skipped levels to report for a heading.

        A direct skip records the (parent, child) level pair. A later heading
        that lands on a recorded pair without skipping directly (e.g. a
        sibling after a deeper subtree) is flagged as well, so a repeated
        pattern is reported every time and not just the first time.
        """
        if direct_skips > 0:
            skipped_combinations.setdefault(parent_level, set()).add(level)
            return direct_skips

        if level in skipped_combinations.get(parent_level, ()):
            return level - parent_level - 1

        return 0

    @staticmethod
    def _add_node_to_tree(node: HeadingNode, state: _TreeState) -> None:
        # Same level or deeper headings are no longer ancestors
        while state.parent_stack and state.parent_stack[-1].level >= node.level:
            state.parent_stack.pop()

        if state.parent_stack:
            state.parent_stack[-1].children.append(node)
        else:
            state.root_nodes.append(node)

        state.parent_stack.append(node)

    # --- Entry point ---

    def analyze(self, document: MarkupDocument) -> Tuple[List[HeadingNode], List[AggregatedFinding]]:
        """Selects, validates and builds the outline of ``document`` in one locked pass."""
        headings = self.select_elements(document)
        with self.registry.transaction(StructureTag.HEADINGS):
            tree = self._build_tree(headings)
            self._detect(headings, tree)
            self._attach_findings(tree)
            aggregated = self.registry.get_aggregated_by_tag(StructureTag.HEADINGS)
        logger.info("Heading analysis: %d heading(s), %d finding type(s)", len(headings), len(aggregated))
        return tree, aggregated
