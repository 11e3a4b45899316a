# src/structaudit/controllers/analysis_controller.py
import logging
from typing import Iterable, Optional, Union

from ..dom.document import MarkupDocument
from ..managers.error_registry import ErrorRegistry
from ..model import AnalysisResult, StructureTag
from ..services.content_fetcher_service import ContentCache, FetchCallable
from ..services.heading_structure_service import HeadingStructureService
from ..services.landmark_structure_service import LandmarkStructureService

logger = logging.getLogger(__name__)

ALL_TYPES = (StructureTag.HEADINGS, StructureTag.LANDMARKS)


def parse_enabled_types(names: Optional[Iterable[Union[str, StructureTag]]]) -> frozenset:
    """
    Normalizes a list of structure type names ("headings", "landmarks").
    None enables everything; unknown names raise ValueError.
    """
    if names is None:
        return frozenset(ALL_TYPES)
    return frozenset(StructureTag(name) for name in names)


class AnalysisController:
    """
    Runs the structure services over one document snapshot.

    The registry is shared by all passes of this controller: each enabled
    type is cleared and repopulated, each disabled type is cleared, so the
    registry always mirrors the last analyzed document.
    """

    def __init__(
            self,
            registry: Optional[ErrorRegistry] = None,
            content_cache: Optional[ContentCache] = None,
            fetch: Optional[FetchCallable] = None
    ):
        self.registry = registry if registry is not None else ErrorRegistry()
        if content_cache is None and fetch is not None:
            content_cache = ContentCache(fetch)
        self.content_cache = content_cache

        self.heading_service = HeadingStructureService(self.registry)
        self.landmark_service = LandmarkStructureService(self.registry)

    def analyze(
            self,
            document: Union[MarkupDocument, str],
            enabled_types: Optional[Iterable[Union[str, StructureTag]]] = None
    ) -> AnalysisResult:
        """
        Analyzes a document (or raw markup) for the enabled structure types
        and returns the trees plus the aggregated findings per type.
        """
        if not isinstance(document, MarkupDocument):
            document = MarkupDocument(document)
        enabled = parse_enabled_types(enabled_types)

        result = AnalysisResult()

        if StructureTag.HEADINGS in enabled:
            tree, aggregated = self.heading_service.analyze(document)
            result.trees[StructureTag.HEADINGS] = tree
            result.aggregated_findings[StructureTag.HEADINGS] = aggregated
        else:
            self.registry.clear_by_tag(StructureTag.HEADINGS)

        if StructureTag.LANDMARKS in enabled:
            tree, aggregated = self.landmark_service.analyze(document)
            result.trees[StructureTag.LANDMARKS] = tree
            result.aggregated_findings[StructureTag.LANDMARKS] = aggregated
        else:
            self.registry.clear_by_tag(StructureTag.LANDMARKS)

        return result

    def _require_cache(self) -> ContentCache:
        if self.content_cache is None:
            raise RuntimeError("AnalysisController was created without a fetch capability")
        return self.content_cache

    async def analyze_url(
            self,
            url: str,
            enabled_types: Optional[Iterable[Union[str, StructureTag]]] = None
    ) -> AnalysisResult:
        """Fetches ``url`` through the content cache and analyzes it. Fetch errors propagate."""
        html = await self._require_cache().fetch_content(url)
        return self.analyze(MarkupDocument(html, url=url), enabled_types)

    async def refresh(
            self,
            url: str,
            enabled_types: Optional[Iterable[Union[str, StructureTag]]] = None
    ) -> AnalysisResult:
        """Drops the cached markup of ``url`` and analyzes a fresh copy (e.g. after an edit)."""
        self._require_cache().clear_cache(url)
        logger.debug("Cache cleared for %s, re-analyzing", url)
        return await self.analyze_url(url, enabled_types)
