# src/structaudit/services/landmark_structure_service.py
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from ..dom.document import MarkupDocument, MarkupElement
from ..managers.error_registry import ErrorRegistry
from ..model import (
    DOCUMENT_ROOT,
    AggregatedFinding,
    LandmarkNode,
    Severity,
    StructureTag,
    flatten_nodes,
)

logger = logging.getLogger(__name__)

ROLE_MAIN = "main"
ROLE_REGION = "region"

# Roles an editor may assign to a landmark
AVAILABLE_ROLES = [
    "banner",
    "main",
    "navigation",
    "complementary",
    "contentinfo",
    "region",
    "search",
    "form",
]

IMPLICIT_ROLE_MAP = {
    "main": "main",
    "nav": "navigation",
    "aside": "complementary",
    "header": "banner",
    "footer": "contentinfo",
    "form": "form",
}

# header/footer are only banner/contentinfo when not scoped to one of these
SECTIONING_SCOPES = {"article", "aside", "footer", "header", "main", "nav", "section"}

LANDMARK_SELECTOR = ", ".join(
    [f'[role="{role}"]' for role in AVAILABLE_ROLES]
    + ["main", "nav", "aside", "form", "header", "footer",
       "section[aria-label]", "section[aria-labelledby]"]
)

RULE_MISSING_MAIN = "landmarkStructure.error.missingMain"
RULE_DUPLICATE_MAIN = "landmarkStructure.error.duplicateMain"
RULE_DUPLICATE_SAME_LABEL = "landmarkStructure.error.duplicateSameLabel"
RULE_MULTIPLE_UNLABELED = "landmarkStructure.error.multipleUnlabeledLandmarks"

LANDMARK_RULES = [RULE_MISSING_MAIN, RULE_DUPLICATE_MAIN, RULE_DUPLICATE_SAME_LABEL, RULE_MULTIPLE_UNLABELED]


def get_accessible_name(element: MarkupElement) -> str:
    """
    Resolves the accessible name of a landmark:

    1. ``aria-label`` when non-empty after trimming;
    2. the text of every element referenced by ``aria-labelledby``, joined by
       a space, skipping ids that do not resolve or resolve to empty text;
    3. otherwise an empty string.
    """
    aria_label = (element.attr("aria-label") or "").strip()
    if aria_label:
        return aria_label

    labelled_by = (element.attr("aria-labelledby") or "").strip()
    if labelled_by:
        texts = []
        for html_id in labelled_by.split():
            referenced = element.document.get_element_by_id(html_id)
            if referenced is None:
                continue
            text = referenced.text()
            if text:
                texts.append(text)
        return " ".join(texts)

    return ""


class LandmarkStructureService:
    """
    Collects the landmark regions of a document, nests them by DOM
    containment and validates them. Findings go to the injected registry
    under ``StructureTag.LANDMARKS``.
    """

    def __init__(self, registry: ErrorRegistry):
        self.registry = registry

    # --- Selection & role resolution ---

    def select_elements(self, document: MarkupDocument) -> List[MarkupElement]:
        result = []
        for element in document.select(LANDMARK_SELECTOR):
            tag_name = element.tag_name
            if tag_name == "section":
                # A section is only a landmark when it is named
                if not get_accessible_name(element):
                    continue
            elif tag_name in ("header", "footer") and not element.role():
                if any(a.tag_name in SECTIONING_SCOPES for a in element.ancestors()):
                    continue
            result.append(element)
        return result

    def get_landmark_role(self, element: MarkupElement) -> str:
        explicit_role = element.role()
        if explicit_role:
            return explicit_role

        tag_name = element.tag_name
        if tag_name == "section":
            return ROLE_REGION if get_accessible_name(element) else ""
        return IMPLICIT_ROLE_MAP.get(tag_name, "")

    def get_landmark_label(self, element: MarkupElement) -> str:
        return get_accessible_name(element)

    # --- Tree construction ---

    def build_landmark_list(self, elements: Sequence[MarkupElement]) -> List[LandmarkNode]:
        """
        Nests landmarks under their closest landmark ancestor. Elements that
        resolve to no role at all are skipped.
        """
        nodes: Dict[int, LandmarkNode] = {}
        ordered: List[Tuple[MarkupElement, LandmarkNode]] = []

        for element in elements:
            if element.element_id in nodes:
                continue
            role = self.get_landmark_role(element)
            if not role:
                logger.debug("Ignoring %r: no landmark role", element)
                continue
            node = LandmarkNode(
                element_id=element.element_id,
                tag_name=element.tag_name,
                role=role,
                label=self.get_landmark_label(element),
                record=element.record_reference()
            )
            nodes[element.element_id] = node
            ordered.append((element, node))

        roots: List[LandmarkNode] = []
        for element, node in ordered:
            parent = self._find_parent_landmark(element, nodes)
            if parent is not None:
                parent.children.append(node)
            else:
                roots.append(node)
        return roots

    @staticmethod
    def _find_parent_landmark(element: MarkupElement, nodes: Dict[int, LandmarkNode]) -> Optional[LandmarkNode]:
        for ancestor in element.ancestors():
            parent = nodes.get(ancestor.element_id)
            if parent is not None:
                return parent
        return None

    def attach_findings(self, landmarks: List[LandmarkNode]) -> None:
        for node in flatten_nodes(landmarks):
            node.findings = self.registry.get_by_tag(node.element_id, StructureTag.LANDMARKS)

    # --- Validation ---

    def build_error_list(self, landmarks: List[LandmarkNode]) -> List[AggregatedFinding]:
        self.detect_all_landmark_errors(landmarks)
        return self.registry.get_aggregated_by_tag(StructureTag.LANDMARKS)

    def detect_all_landmark_errors(self, landmarks: List[LandmarkNode]) -> None:
        with self.registry.transaction(StructureTag.LANDMARKS):
            self._detect(landmarks)

    def _detect(self, landmarks: List[LandmarkNode]) -> None:
        all_landmarks = flatten_nodes(landmarks)
        main_landmarks = [node for node in all_landmarks if node.role == ROLE_MAIN]

        self._validate_main_presence(main_landmarks)
        self._validate_single_main(main_landmarks)
        self._validate_label_uniqueness(all_landmarks)
        self._validate_unlabeled_groups(all_landmarks)

    def _validate_main_presence(self, main_landmarks: List[LandmarkNode]) -> None:
        if not main_landmarks:
            self.registry.add(
                DOCUMENT_ROOT,
                ErrorRegistry.create_finding(RULE_MISSING_MAIN, Severity.ERROR, StructureTag.LANDMARKS)
            )

    def _validate_single_main(self, main_landmarks: List[LandmarkNode]) -> None:
        if len(main_landmarks) <= 1:
            return
        for index, node in enumerate(main_landmarks):
            self.registry.add(
                node.element_id,
                ErrorRegistry.create_finding(
                    RULE_DUPLICATE_MAIN, Severity.ERROR, StructureTag.LANDMARKS, counted=index > 0
                )
            )

    def _validate_label_uniqueness(self, landmarks: List[LandmarkNode]) -> None:
        label_groups: Dict[str, List[LandmarkNode]] = defaultdict(list)
        for node in landmarks:
            label = node.label.strip()
            if label:
                label_groups[label].append(node)

        # Counted once per duplicated label, attached to every member
        for label, group in label_groups.items():
            if len(group) < 2:
                continue
            finding = ErrorRegistry.create_finding(
                RULE_DUPLICATE_SAME_LABEL, Severity.ERROR, StructureTag.LANDMARKS, group=label
            )
            for node in group:
                self.registry.add(node.element_id, finding)

    def _validate_unlabeled_groups(self, landmarks: List[LandmarkNode]) -> None:
        role_groups: Dict[str, List[LandmarkNode]] = defaultdict(list)
        for node in landmarks:
            if node.role:
                role_groups[node.role].append(node)

        for role, group in role_groups.items():
            if role == ROLE_MAIN or len(group) < 2:
                continue
            unlabeled = [node for node in group if not node.label]
            if len(unlabeled) <= 1:
                continue
            finding = ErrorRegistry.create_finding(
                RULE_MULTIPLE_UNLABELED, Severity.WARNING, StructureTag.LANDMARKS, group=role
            )
            for node in unlabeled:
                self.registry.add(node.element_id, finding)

    # --- Entry point ---

    def analyze(self, document: MarkupDocument) -> Tuple[List[LandmarkNode], List[AggregatedFinding]]:
        elements = self.select_elements(document)
        landmarks = self.build_landmark_list(elements)
        with self.registry.transaction(StructureTag.LANDMARKS):
            self._detect(landmarks)
            self.attach_findings(landmarks)
            aggregated = self.registry.get_aggregated_by_tag(StructureTag.LANDMARKS)
        logger.info("Landmark analysis: %d landmark(s), %d finding type(s)", len(elements), len(aggregated))
        return landmarks, aggregated
