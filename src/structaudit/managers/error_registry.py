# src/structaudit/managers/error_registry.py
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set, Tuple

from ..model import AggregatedFinding, Finding, Severity, StructureTag

logger = logging.getLogger(__name__)


class ErrorRegistry:
    """
    Store of structure findings keyed by element id.

    Each structure service writes its findings here under its own tag; the
    UI side reads them back either aggregated (summary) or per element
    (inline highlighting). The registry outlives a single analysis pass, so a
    tag must be cleared before it is repopulated. ``transaction`` does both
    under the registry lock.
    """

    def __init__(self):
        self._findings: Dict[int, List[Finding]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def create_finding(
            rule_id: str,
            severity: Severity,
            tag: StructureTag,
            group: Optional[str] = None,
            counted: bool = True
    ) -> Finding:
        return Finding(rule_id=rule_id, severity=severity, tag=tag, group=group, counted=counted)

    def __len__(self) -> int:
        return len(self._findings)

    def __contains__(self, element_id: int) -> bool:
        return element_id in self._findings

    def store(self, element_id: int, findings: List[Finding]) -> None:
        """Replaces all findings of an element."""
        with self._lock:
            self._findings[element_id] = list(findings)

    def add(self, element_id: int, finding: Finding) -> None:
        """Adds a finding to an element unless the element already carries that rule."""
        with self._lock:
            element_findings = self._findings.setdefault(element_id, [])
            if finding not in element_findings:
                element_findings.append(finding)

    def get(self, element_id: int) -> List[Finding]:
        with self._lock:
            return list(self._findings.get(element_id, []))

    def get_by_tag(self, element_id: int, tag: StructureTag) -> List[Finding]:
        with self._lock:
            return [f for f in self._findings.get(element_id, []) if f.tag == tag]

    def get_aggregated_by_tag(self, tag: StructureTag) -> List[AggregatedFinding]:
        """
        Collapses all findings of a tag into one entry per rule id.

        The count is the number of elements carrying the rule, except that
        grouped findings count once per distinct group and findings marked
        ``counted=False`` do not count at all.
        """
        aggregated: Dict[str, AggregatedFinding] = {}
        seen_groups: Set[Tuple[str, str]] = set()

        with self._lock:
            for element_findings in self._findings.values():
                for finding in element_findings:
                    if finding.tag != tag:
                        continue

                    entry = aggregated.get(finding.rule_id)
                    if entry is None:
                        entry = AggregatedFinding(
                            rule_id=finding.rule_id,
                            severity=finding.severity,
                            tag=finding.tag,
                            count=0
                        )
                        aggregated[finding.rule_id] = entry

                    if not finding.counted:
                        continue
                    if finding.group:
                        group_key = (finding.rule_id, finding.group)
                        if group_key in seen_groups:
                            continue
                        seen_groups.add(group_key)
                    entry.count += 1

        return list(aggregated.values())

    def get_all_aggregated(self) -> List[AggregatedFinding]:
        """Aggregated findings of every tag, headings first."""
        result = []
        for tag in StructureTag:
            result.extend(self.get_aggregated_by_tag(tag))
        return result

    def clear_by_tag(self, tag: StructureTag) -> None:
        """Drops every finding of ``tag``; elements left without findings are removed."""
        with self._lock:
            for element_id in list(self._findings):
                remaining = [f for f in self._findings[element_id] if f.tag != tag]
                if remaining:
                    self._findings[element_id] = remaining
                else:
                    del self._findings[element_id]

    def clear_all(self) -> None:
        with self._lock:
            self._findings.clear()

    @contextmanager
    def transaction(self, tag: StructureTag) -> Iterator["ErrorRegistry"]:
        """
        Clears ``tag`` and holds the registry lock until the block exits, so
        a validation pass cannot interleave with another pass on the same tag.
        """
        with self._lock:
            self.clear_by_tag(tag)
            logger.debug("Registry cleared for tag '%s'", tag.value)
            yield self
