# src/structaudit/services/report_service.py
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..model import AnalysisResult, StructureTag, flatten_nodes
from ..utils.path_utils import PathUtils
from ..utils.rule_labels import get_rule_description, get_rule_label, get_severity_label

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["Source", "Structure", "Rule", "Label", "Description", "Severity", "Count"]
ELEMENT_COLUMNS = ["Source", "Structure", "Element", "Tag", "Level/Role", "Label", "Rule", "Severity"]


class ReportService:
    """
    Turns analysis results into pandas DataFrames and writes them to disk.
    Keeps the structure services free of any pandas dependency.
    """

    def __init__(self, locale: Optional[str] = None):
        self.locale = locale

    def summary_frame(self, results: Dict[str, AnalysisResult]) -> pd.DataFrame:
        """One row per (source, aggregated finding)."""
        rows = []
        for source, result in results.items():
            for finding in result.all_findings():
                rows.append({
                    "Source": source,
                    "Structure": finding.tag.value,
                    "Rule": finding.rule_id,
                    "Label": get_rule_label(finding.rule_id, self.locale),
                    "Description": get_rule_description(finding.rule_id, self.locale),
                    "Severity": get_severity_label(finding.severity, self.locale),
                    "Count": finding.count,
                })
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)

    def element_frame(self, results: Dict[str, AnalysisResult]) -> pd.DataFrame:
        """One row per (source, element, finding) for inline inspection."""
        rows: List[dict] = []
        for source, result in results.items():
            for tag in StructureTag:
                for node in flatten_nodes(result.trees.get(tag, [])):
                    level_or_role = getattr(node, "level", None) or getattr(node, "role", "")
                    for finding in node.findings:
                        rows.append({
                            "Source": source,
                            "Structure": tag.value,
                            "Element": node.element_id,
                            "Tag": node.tag_name,
                            "Level/Role": str(level_or_role),
                            "Label": node.label,
                            "Rule": finding.rule_id,
                            "Severity": get_severity_label(finding.severity, self.locale),
                        })
        return pd.DataFrame(rows, columns=ELEMENT_COLUMNS)

    def export(self, results: Dict[str, AnalysisResult], output: Path) -> Path:
        """
        Writes the summary to ``output``. The format follows the suffix:
        .xlsx (summary and element sheets), .json, anything else CSV.
        Relative paths are resolved against the user's Documents folder.
        """
        output_file = Path(output)
        if not output_file.is_absolute():
            output_file = PathUtils.get_user_documents_dir() / output_file
        output_file.parent.mkdir(parents=True, exist_ok=True)

        summary = self.summary_frame(results)
        suffix = output_file.suffix.lower()

        if suffix == ".xlsx":
            with pd.ExcelWriter(output_file, engine='openpyxl') as writer:
                summary.to_excel(writer, sheet_name="Summary", index=False)
                self.element_frame(results).to_excel(writer, sheet_name="Elements", index=False)
        elif suffix == ".json":
            summary.to_json(output_file, orient="records", indent=2, force_ascii=False)
        else:
            summary.to_csv(output_file, index=False)

        logger.info("Exported %d summary row(s) to %s", len(summary), output_file)
        return output_file
