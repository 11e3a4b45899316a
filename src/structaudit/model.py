# src/structaudit/model.py
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Registry key of the document itself; findings that belong to no single
# element (missing h1, missing main) are stored here.
DOCUMENT_ROOT = 0


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class StructureTag(str, Enum):
    """Scope of a finding, used to aggregate and clear one structure type at a time."""
    HEADINGS = "headings"
    LANDMARKS = "landmarks"


class Finding(BaseModel):
    """
    A single rule violation attached to an element.

    Two findings are equal when their rule ids are equal. ``group`` and
    ``counted`` only steer aggregation:

    - findings with the same ``rule_id`` and the same non-empty ``group`` are
      counted once per distinct group (e.g. one per duplicated label);
    - a finding with ``counted=False`` marks its element for highlighting but
      adds nothing to the aggregated count (e.g. the first of several h1s).
    """
    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    tag: StructureTag
    group: Optional[str] = None
    counted: bool = True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Finding):
            return NotImplemented
        return self.rule_id == other.rule_id

    def __hash__(self) -> int:
        return hash(self.rule_id)


class AggregatedFinding(BaseModel):
    """A finding plus the number of occurrences across the document."""
    rule_id: str
    severity: Severity
    tag: StructureTag
    count: int = 0


class RecordReference(BaseModel):
    """
    Content record an element was rendered from, as announced by the
    ``data-record-*`` attributes of the markup. Only read, never resolved.
    """
    table: str
    column: Optional[str] = None
    uid: int


class StructureNode(BaseModel):
    """Common fields of heading and landmark tree nodes."""
    element_id: int
    tag_name: str
    label: str = ""
    children: List["StructureNode"] = Field(default_factory=list)
    findings: List[Finding] = Field(default_factory=list)
    record: Optional[RecordReference] = None

    @property
    def has_error(self) -> bool:
        return len(self.findings) > 0

    @property
    def is_editable(self) -> bool:
        return self.record is not None

    def walk(self):
        """Yields this node and all descendants in document order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class HeadingNode(StructureNode):
    level: int
    skipped_levels: int = 0
    children: List["HeadingNode"] = Field(default_factory=list)


class LandmarkNode(StructureNode):
    role: str
    children: List["LandmarkNode"] = Field(default_factory=list)


def flatten_nodes(roots: List[StructureNode]) -> List[StructureNode]:
    """Flattens a forest into document (pre-)order without recursion."""
    result: List[StructureNode] = []
    for root in roots:
        result.extend(root.walk())
    return result


class AnalysisResult(BaseModel):
    """
    Outcome of one analysis pass: a tree per enabled structure type and the
    tag-scoped aggregated findings for the summary.
    """
    trees: Dict[StructureTag, List[Union[HeadingNode, LandmarkNode]]] = Field(default_factory=dict)
    aggregated_findings: Dict[StructureTag, List[AggregatedFinding]] = Field(default_factory=dict)

    def all_findings(self) -> List[AggregatedFinding]:
        """Aggregated findings of every tag, headings first."""
        result = []
        for tag in StructureTag:
            result.extend(self.aggregated_findings.get(tag, []))
        return result

    def total_count(self, tag: StructureTag) -> int:
        return sum(f.count for f in self.aggregated_findings.get(tag, []))

    @property
    def has_errors(self) -> bool:
        return any(f.severity == Severity.ERROR for f in self.all_findings())


StructureNode.model_rebuild()
HeadingNode.model_rebuild()
LandmarkNode.model_rebuild()
