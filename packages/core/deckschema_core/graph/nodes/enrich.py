"""Enrich node: add derived views to every extracted shape."""

from collections.abc import Callable
from typing import Any

from deckschema_core.pipeline.enricher import EnrichmentStats, enrich_slides
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)


def create_enrich_node(enabled: bool = True) -> Callable[[dict[str, Any]], dict[str, Any]]:
    """Create an enrich node.

    Args:
        enabled: When False the node passes slides through untouched

    Returns:
        Node function
    """

    def enrich_node(state: dict[str, Any]) -> dict[str, Any]:
        slides = state.get("slides", [])
        if not enabled:
            logger.info("Enrichment disabled, passing slides through")
            return {
                **state,
                "enrichment_stats": EnrichmentStats(),
                "current_step": "enrich",
                "progress": 60,
            }

        # Per-shape failures are recorded on the shape; nothing raises here
        enriched, stats = enrich_slides(slides)
        return {
            **state,
            "slides": enriched,
            "enrichment_stats": stats,
            "current_step": "enrich",
            "progress": 60,
        }

    return enrich_node
