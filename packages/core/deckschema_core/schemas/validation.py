"""Validation results and auto-fix options."""

from typing import Any, Literal

from pydantic import Field

from deckschema_core.schemas.base import SchemaModel

Severity = Literal["error", "warning"]
Impact = Literal["low", "medium", "high"]


class AutoFixOptions(SchemaModel):
    """Which repair classes the validator may apply."""

    enable_auto_fix: bool = False
    fix_missing_required: bool = True
    fix_invalid_types: bool = True
    fix_invalid_values: bool = True
    fix_inconsistent_data: bool = True
    generate_missing_ids: bool = False


class ValidationIssue(SchemaModel):
    """A single schema or consistency violation."""

    code: str = Field(..., description="Schema keyword or consistency code")
    path: str = Field(..., description="Slash-separated path to the offending value")
    message: str
    severity: Severity
    expected_type: str | None = None
    actual_value: Any = None
    suggestions: list[str] = Field(default_factory=list)


class ValidationWarning(SchemaModel):
    """Advisory finding that does not affect validity."""

    path: str
    message: str
    recommendation: str
    impact: Impact = "low"


class ValidationResult(SchemaModel):
    """Outcome of validating one document."""

    is_valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)
    fixes_applied: int = 0
    fixed_document: dict[str, Any] | None = None


class SectionScores(SchemaModel):
    """Per-section compliance sub-scores."""

    metadata: int = 100
    slides: int = 100
    shapes: int = 100
    overall: int = 100


class ComplianceReport(SchemaModel):
    """Aggregated 0-100 compliance score."""

    overall_score: int
    compliance: SectionScores
    error_count: int = 0
    warning_count: int = 0
    recommendations: list[str] = Field(default_factory=list)


class StructureCheck(SchemaModel):
    """Fast structural pre-check result."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
