# tests/core/test_report_service.py
import json

import pandas as pd
import pytest

from structaudit.controllers.analysis_controller import AnalysisController
from structaudit.model import Severity
from structaudit.services.heading_structure_service import HEADING_RULES
from structaudit.services.landmark_structure_service import LANDMARK_RULES
from structaudit.services.report_service import ELEMENT_COLUMNS, SUMMARY_COLUMNS, ReportService
from structaudit.utils.path_utils import PathUtils
from structaudit.utils.rule_labels import get_rule_description, get_rule_label, get_severity_label

PAGE = """
<main><h1>One</h1><h1>Two</h1><h3>Deep</h3></main>
<nav></nav><nav></nav>
"""


@pytest.fixture
def results():
    return {"page.html": AnalysisController().analyze(PAGE)}


def test_summary_frame_has_one_row_per_rule(results):
    frame = ReportService("en").summary_frame(results)

    assert list(frame.columns) == SUMMARY_COLUMNS
    assert frame["Rule"].tolist() == [
        "headingStructure.error.multipleH1",
        "headingStructure.error.skippedLevel",
        "landmarkStructure.error.multipleUnlabeledLandmarks",
    ]
    assert frame["Count"].tolist() == [1, 1, 1]
    assert frame.loc[0, "Label"] == "Multiple top-level headings"
    assert frame.loc[0, "Severity"] == "Warning"
    assert set(frame["Source"]) == {"page.html"}


def test_element_frame_lists_every_flagged_element(results):
    frame = ReportService("de").element_frame(results)

    assert list(frame.columns) == ELEMENT_COLUMNS
    headings = frame[frame["Structure"] == "headings"]
    # Both h1s are highlighted even though only the second one is counted
    assert headings["Tag"].tolist() == ["h1", "h1", "h3"]
    assert headings["Level/Role"].tolist() == ["1", "1", "3"]
    landmarks = frame[frame["Structure"] == "landmarks"]
    assert landmarks["Level/Role"].tolist() == ["navigation", "navigation"]
    assert set(frame["Severity"]) == {"Fehler", "Warnung"}


def test_empty_results_give_empty_frames():
    service = ReportService()

    assert service.summary_frame({}).empty
    assert list(service.element_frame({}).columns) == ELEMENT_COLUMNS


def test_export_csv(results, tmp_path):
    path = ReportService("en").export(results, tmp_path / "report.csv")

    frame = pd.read_csv(path)
    assert list(frame.columns) == SUMMARY_COLUMNS
    assert len(frame) == 3


def test_export_json(results, tmp_path):
    path = ReportService("en").export(results, tmp_path / "out" / "report.json")

    rows = json.loads(path.read_text(encoding="utf-8"))
    assert rows[0]["Rule"] == "headingStructure.error.multipleH1"
    assert rows[0]["Count"] == 1


def test_export_xlsx_has_summary_and_element_sheets(results, tmp_path):
    path = ReportService("en").export(results, tmp_path / "report.xlsx")

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["Summary", "Elements"]
    assert len(sheets["Elements"]) == 5


def test_relative_export_path_goes_to_documents(results, tmp_path, monkeypatch):
    monkeypatch.setattr(PathUtils, "get_user_documents_dir", lambda: tmp_path / "Documents")

    path = ReportService("en").export(results, "audits/report.csv")

    assert path == tmp_path / "Documents" / "audits" / "report.csv"
    assert path.exists()


def test_rule_labels_fall_back_to_rule_id():
    assert get_rule_label("headingStructure.error.emptyHeadings", "de") == "Leere Überschrift"
    assert get_rule_label("headingStructure.error.emptyHeadings", "fr") == "Empty heading"
    assert get_rule_label("custom.rule", "en") == "custom.rule"
    assert get_rule_description("custom.rule", "en") == ""
    assert get_severity_label(Severity.WARNING, "de") == "Warnung"


@pytest.mark.parametrize("locale", ["en", "de"])
def test_every_rule_has_a_label(locale):
    for rule_id in HEADING_RULES + LANDMARK_RULES:
        assert get_rule_label(rule_id, locale) != rule_id
        assert get_rule_description(rule_id, locale)
