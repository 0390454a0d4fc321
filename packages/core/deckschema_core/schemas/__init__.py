"""Data schemas for the conversion pipeline.

This module exports the Universal Schema document model, the intermediate
extraction records, validation results and job records.
"""

from deckschema_core.schemas.extraction import (
    ExtractionReport,
    ExtractionTree,
    FileInfo,
    PresentationInfo,
)
from deckschema_core.schemas.jobs import Job, JobStatus, JobType, can_transition
from deckschema_core.schemas.universal import (
    SCHEMA_VERSION,
    ConversionMetadata,
    DocumentMetadata,
    Geometry,
    ProcessingStats,
    Shape,
    ShapeType,
    Slide,
    SlideSize,
    SlideSummary,
    Theme,
    UniversalDocument,
)
from deckschema_core.schemas.validation import (
    AutoFixOptions,
    ComplianceReport,
    StructureCheck,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
)

__all__ = [
    # Universal document
    "SCHEMA_VERSION",
    "ConversionMetadata",
    "DocumentMetadata",
    "Geometry",
    "ProcessingStats",
    "Shape",
    "ShapeType",
    "Slide",
    "SlideSize",
    "SlideSummary",
    "Theme",
    "UniversalDocument",
    # Extraction
    "ExtractionReport",
    "ExtractionTree",
    "FileInfo",
    "PresentationInfo",
    # Validation
    "AutoFixOptions",
    "ComplianceReport",
    "StructureCheck",
    "ValidationIssue",
    "ValidationResult",
    "ValidationWarning",
    # Jobs
    "Job",
    "JobStatus",
    "JobType",
    "can_transition",
]
