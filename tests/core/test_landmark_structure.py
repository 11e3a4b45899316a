# tests/core/test_landmark_structure.py
import pytest

from structaudit.dom.document import MarkupDocument
from structaudit.managers.error_registry import ErrorRegistry
from structaudit.model import DOCUMENT_ROOT, Severity, StructureTag, flatten_nodes
from structaudit.services.landmark_structure_service import (
    RULE_DUPLICATE_MAIN,
    RULE_DUPLICATE_SAME_LABEL,
    RULE_MISSING_MAIN,
    RULE_MULTIPLE_UNLABELED,
    LandmarkStructureService,
    get_accessible_name,
)


@pytest.fixture
def registry():
    return ErrorRegistry()


@pytest.fixture
def service(registry):
    return LandmarkStructureService(registry)


def counts(aggregated):
    return {f.rule_id: f.count for f in aggregated}


def rule_ids(registry, element_id):
    return {f.rule_id for f in registry.get_by_tag(element_id, StructureTag.LANDMARKS)}


# --- Accessible names ---

def test_aria_label_wins_over_labelledby():
    doc = MarkupDocument('<span id="t">Other</span><nav aria-label="  Primary  " aria-labelledby="t"></nav>')
    [nav] = doc.select("nav")

    assert get_accessible_name(nav) == "Primary"


def test_blank_aria_label_falls_back_to_labelledby():
    doc = MarkupDocument('<h2 id="a">Latest</h2><p id="b"> news </p><nav aria-label="  " aria-labelledby="a missing b"></nav>')
    [nav] = doc.select("nav")

    assert get_accessible_name(nav) == "Latest news"


def test_unresolvable_labelledby_gives_empty_name():
    doc = MarkupDocument('<span id="empty"> </span><nav aria-labelledby="nope empty"></nav><aside></aside>')
    nav, aside = doc.select("nav, aside")

    assert get_accessible_name(nav) == ""
    assert get_accessible_name(aside) == ""


# --- Selection & roles ---

def test_select_elements_by_role_tag_and_name(service):
    doc = MarkupDocument("""
        <div role="navigation">Explicit</div>
        <main>
          <section>No name</section>
          <section aria-label="Named">Named</section>
          <section aria-labelledby="missing">Unresolved</section>
        </main>
        <aside></aside>
        <form></form>
        <div>Plain</div>
    """)

    selected = service.select_elements(doc)

    assert [(el.tag_name, service.get_landmark_role(el)) for el in selected] == [
        ("div", "navigation"),
        ("main", "main"),
        ("section", "region"),
        ("aside", "complementary"),
        ("form", "form"),
    ]


def test_header_and_footer_only_at_page_level(service):
    doc = MarkupDocument("""
        <header>Site</header>
        <article><header>Article head</header><footer>Article foot</footer></article>
        <section aria-label="Teaser"><footer role="contentinfo">Forced</footer></section>
        <footer>Site foot</footer>
    """)

    selected = service.select_elements(doc)

    assert [(el.tag_name, el.text()) for el in selected] == [
        ("header", "Site"),
        ("section", "Forced"),
        ("footer", "Forced"),
        ("footer", "Site foot"),
    ]
    assert [service.get_landmark_role(el) for el in selected] == ["banner", "region", "contentinfo", "contentinfo"]


def test_explicit_role_takes_precedence(service):
    doc = MarkupDocument('<nav role="search"></nav><section role="Region" aria-label="x"></section>')
    nav, section = doc.select("nav, section")

    assert service.get_landmark_role(nav) == "search"
    assert service.get_landmark_role(section) == "region"


# --- Hierarchy ---

def test_landmarks_nest_by_containment(service):
    doc = MarkupDocument("""
        <header><nav aria-label="Top">x</nav></header>
        <main>
          <div><div><form aria-label="Search"><section aria-label="Inner">y</section></form></div></div>
        </main>
        <footer></footer>
    """)

    tree = service.build_landmark_list(service.select_elements(doc))

    assert [n.role for n in tree] == ["banner", "main", "contentinfo"]
    assert [n.label for n in tree[0].children] == ["Top"]
    form = tree[1].children[0]
    assert (form.role, form.label) == ("form", "Search")
    assert [n.role for n in form.children] == ["region"]
    assert [n.role for n in flatten_nodes(tree)] == [
        "banner", "navigation", "main", "form", "region", "contentinfo"
    ]


def test_record_reference_makes_landmark_editable(service):
    doc = MarkupDocument('<main data-record-table="tt_content" data-record-uid="7"></main><nav></nav>')

    main, nav = service.build_landmark_list(service.select_elements(doc))

    assert main.is_editable and main.record.uid == 7
    assert not nav.is_editable


# --- Validation ---

def test_missing_main_is_attributed_to_document(service, registry):
    _, aggregated = service.analyze(MarkupDocument("<nav></nav>"))

    assert counts(aggregated) == {RULE_MISSING_MAIN: 1}
    assert rule_ids(registry, DOCUMENT_ROOT) == {RULE_MISSING_MAIN}


def test_no_landmarks_at_all_is_valid_input(service, registry):
    tree, aggregated = service.analyze(MarkupDocument("<p>Just text</p>"))

    assert tree == []
    assert counts(aggregated) == {RULE_MISSING_MAIN: 1}


def test_duplicate_main_counts_extra_regions(service, registry):
    doc = MarkupDocument("<main>a</main><div role='main'>b</div>")
    elements = service.select_elements(doc)

    _, aggregated = service.analyze(doc)

    assert counts(aggregated) == {RULE_DUPLICATE_MAIN: 1}
    for element in elements:
        assert rule_ids(registry, element.element_id) == {RULE_DUPLICATE_MAIN}


def test_duplicate_labels_count_groups_not_elements(service, registry):
    doc = MarkupDocument("""
        <main></main>
        <nav aria-label="Menu"></nav>
        <aside aria-label="Menu"></aside>
        <nav aria-label="Footer"></nav>
        <form aria-label="Footer"></form>
        <aside aria-label="Unique"></aside>
    """)
    elements = service.select_elements(doc)

    _, aggregated = service.analyze(doc)

    assert counts(aggregated) == {RULE_DUPLICATE_SAME_LABEL: 2}
    flagged = [el.tag_name for el in elements if RULE_DUPLICATE_SAME_LABEL in rule_ids(registry, el.element_id)]
    assert flagged == ["nav", "aside", "nav", "form"]


def test_unlabeled_landmarks_sharing_a_role(service, registry):
    doc = MarkupDocument("""
        <main></main>
        <nav></nav><nav></nav><nav aria-label="Labeled"></nav>
        <aside></aside><aside></aside>
        <form></form><form aria-label="Contact"></form>
    """)
    elements = service.select_elements(doc)

    _, aggregated = service.analyze(doc)

    unlabeled = [f for f in aggregated if f.rule_id == RULE_MULTIPLE_UNLABELED][0]
    assert unlabeled.count == 2
    assert unlabeled.severity == Severity.WARNING
    flagged = [el.tag_name for el in elements if RULE_MULTIPLE_UNLABELED in rule_ids(registry, el.element_id)]
    assert flagged == ["nav", "nav", "aside", "aside"]


def test_unlabeled_main_regions_are_left_to_duplicate_main(service, registry):
    _, aggregated = service.analyze(MarkupDocument("<main></main><main></main>"))

    assert RULE_MULTIPLE_UNLABELED not in counts(aggregated)


def test_nested_landmarks_are_validated_too(service, registry):
    doc = MarkupDocument("<main><nav></nav><div><nav></nav></div><main></main></main>")

    _, aggregated = service.analyze(doc)

    assert counts(aggregated) == {RULE_DUPLICATE_MAIN: 1, RULE_MULTIPLE_UNLABELED: 1}


def test_nodes_carry_landmark_findings(service):
    tree, _ = service.analyze(MarkupDocument("<main></main><main></main>"))

    assert all(node.has_error for node in tree)
    assert tree[0].findings[0].rule_id == RULE_DUPLICATE_MAIN


def test_build_error_list_clears_previous_pass(service, registry):
    first = service.build_landmark_list(service.select_elements(MarkupDocument("<nav></nav><nav></nav>")))
    second = service.build_landmark_list(service.select_elements(MarkupDocument("<main></main>")))

    service.build_error_list(first)
    aggregated = service.build_error_list(second)

    assert aggregated == []
    assert registry.get_aggregated_by_tag(StructureTag.LANDMARKS) == []
