# src/structaudit/utils/rule_labels.py
from typing import Optional

from ..managers.config_manager import config_manager
from ..model import Severity

# rule id -> (title, description)
RULE_LABELS = {
    "en": {
        "headingStructure.error.missingH1": (
            "Missing top-level heading",
            "The page has no h1. Every page needs one main heading describing its content.",
        ),
        "headingStructure.error.multipleH1": (
            "Multiple top-level headings",
            "The page has more than one h1. Use a single h1 and structure the rest with h2-h6.",
        ),
        "headingStructure.error.emptyHeadings": (
            "Empty heading",
            "A heading has no text content and is announced without meaning by screen readers.",
        ),
        "headingStructure.error.skippedLevel": (
            "Skipped heading level",
            "A heading skips one or more levels relative to its parent heading.",
        ),
        "landmarkStructure.error.missingMain": (
            "Missing main landmark",
            "The page has no main region, so assistive technology cannot jump to the content.",
        ),
        "landmarkStructure.error.duplicateMain": (
            "Multiple main landmarks",
            "The page has more than one main region. Only one is allowed.",
        ),
        "landmarkStructure.error.duplicateSameLabel": (
            "Landmarks with identical names",
            "Several landmarks share the same accessible name and cannot be told apart.",
        ),
        "landmarkStructure.error.multipleUnlabeledLandmarks": (
            "Unlabeled landmarks of the same role",
            "Several landmarks of the same role have no accessible name. Label each of them.",
        ),
    },
    "de": {
        "headingStructure.error.missingH1": (
            "Hauptüberschrift fehlt",
            "Die Seite hat keine h1. Jede Seite benötigt eine Hauptüberschrift.",
        ),
        "headingStructure.error.multipleH1": (
            "Mehrere Hauptüberschriften",
            "Die Seite enthält mehr als eine h1.",
        ),
        "headingStructure.error.emptyHeadings": (
            "Leere Überschrift",
            "Eine Überschrift enthält keinen Text.",
        ),
        "headingStructure.error.skippedLevel": (
            "Übersprungene Überschriftenebene",
            "Eine Überschrift überspringt eine oder mehrere Ebenen.",
        ),
        "landmarkStructure.error.missingMain": (
            "Hauptbereich fehlt",
            "Die Seite hat keinen main-Bereich.",
        ),
        "landmarkStructure.error.duplicateMain": (
            "Mehrere Hauptbereiche",
            "Die Seite enthält mehr als einen main-Bereich.",
        ),
        "landmarkStructure.error.duplicateSameLabel": (
            "Landmarks mit gleichem Namen",
            "Mehrere Landmarks haben denselben zugänglichen Namen.",
        ),
        "landmarkStructure.error.multipleUnlabeledLandmarks": (
            "Unbenannte Landmarks gleicher Rolle",
            "Mehrere Landmarks derselben Rolle haben keinen zugänglichen Namen.",
        ),
    },
}

SEVERITY_LABELS = {
    "en": {Severity.ERROR: "Error", Severity.WARNING: "Warning"},
    "de": {Severity.ERROR: "Fehler", Severity.WARNING: "Warnung"},
}


def _locale(locale: Optional[str]) -> str:
    return locale or config_manager.get_nested("labels.locale", "en")


def get_rule_label(rule_id: str, locale: Optional[str] = None) -> str:
    """Human readable title of a rule; unknown ids are returned unchanged."""
    labels = RULE_LABELS.get(_locale(locale), RULE_LABELS["en"])
    entry = labels.get(rule_id)
    return entry[0] if entry else rule_id


def get_rule_description(rule_id: str, locale: Optional[str] = None) -> str:
    labels = RULE_LABELS.get(_locale(locale), RULE_LABELS["en"])
    entry = labels.get(rule_id)
    return entry[1] if entry else ""


def get_severity_label(severity: Severity, locale: Optional[str] = None) -> str:
    labels = SEVERITY_LABELS.get(_locale(locale), SEVERITY_LABELS["en"])
    return labels.get(severity, str(severity.value))
