"""Conversion graph nodes."""

from deckschema_core.graph.nodes import build, enrich, extract, ingest, validate

__all__ = ["build", "enrich", "extract", "ingest", "validate"]
