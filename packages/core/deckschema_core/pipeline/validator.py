"""Schema validation and rule-based auto-fix for Universal documents."""

import copy
import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from jsonschema import Draft7Validator, FormatChecker
from pydantic import BaseModel

from deckschema_core.pipeline.definition import (
    FIELD_DEFAULTS,
    SHAPE_SCHEMA,
    SLIDE_SCHEMA,
    UNIVERSAL_DOCUMENT_SCHEMA,
)
from deckschema_core.schemas.validation import (
    AutoFixOptions,
    ComplianceReport,
    SectionScores,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
)
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_KEYWORDS = frozenset({"required", "type", "enum"})
RANGE_KEYWORDS = frozenset({"minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"})

DEFAULT_MAX_FIX_ROUNDS = 5
MIN_SHAPE_DIMENSION = 10
SCORE_PENALTY = 5

_ZERO_VALUES: dict[str, Any] = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "array": [],
    "object": {},
    "null": None,
}

FORMAT_CHECKER = FormatChecker(formats=())


@FORMAT_CHECKER.checks("date-time")
def _is_date_time(value: object) -> bool:
    if not isinstance(value, str):
        return True
    if len(value) <= 10 or value[10] not in "Tt ":
        return False
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_time(value: Any) -> datetime | None:
    """Parse ISO-8601 or RFC 2822 text into an aware datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def convert_to_type(value: Any, expected: str | list[str]) -> Any:
    """Coerce ``value`` to a JSON Schema type, or its zero value on failure."""
    if isinstance(expected, list):
        expected = next((t for t in expected if t != "null"), "null")
    try:
        if expected == "string":
            if value is None:
                return ""
            if isinstance(value, bool):
                return "true" if value else "false"
            if isinstance(value, (dict, list)):
                return json.dumps(value)
            return str(value)
        if expected == "number":
            if isinstance(value, bool):
                return int(value)
            number = float(value)
            if not math.isfinite(number):
                return 0
            return int(number) if number.is_integer() else number
        if expected == "integer":
            if isinstance(value, bool):
                return int(value)
            return int(float(value))
        if expected == "boolean":
            if isinstance(value, str):
                return value.strip().lower() in ("true", "1", "yes", "on")
            return bool(value)
        if expected == "array":
            if value is None:
                return []
            if isinstance(value, (tuple, set)):
                return list(value)
            return [value]
        if expected == "object":
            return dict(value) if isinstance(value, Mapping) else {}
    except (TypeError, ValueError, OverflowError):
        pass
    return copy.deepcopy(_ZERO_VALUES.get(expected))


def _join_path(parts: list[Any]) -> str:
    return "/".join(str(part) for part in parts)


def _summarize(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return f"<{type(value).__name__} of {len(value)} items>"
    return value


def _resolve(root: Any, parts: list[Any]) -> Any:
    node = root
    for part in parts:
        if isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            node = node[part]
        elif isinstance(node, dict) and part in node:
            node = node[part]
        else:
            return None
    return node


@dataclass
class _Violation:
    """A violation plus what the fixer needs to repair it."""

    keyword: str
    location: list[Any]
    detail: Any
    issue: ValidationIssue


def _suggestions(keyword: str, field: str, detail: Any) -> list[str]:
    if keyword == "required":
        hints = [f"Add the missing '{field}' field"]
        if field in FIELD_DEFAULTS:
            hints.append(f"Auto-fix uses the default {FIELD_DEFAULTS[field]!r}")
        return hints
    if keyword == "type":
        expected = detail if isinstance(detail, str) else " or ".join(detail)
        return [f"Convert '{field}' to {expected}"]
    if keyword == "enum":
        return [f"Use one of: {', '.join(str(v) for v in detail)}"]
    if keyword in ("minimum", "exclusiveMinimum"):
        op = ">=" if keyword == "minimum" else ">"
        return [f"Use a value {op} {detail}"]
    if keyword in ("maximum", "exclusiveMaximum"):
        op = "<=" if keyword == "maximum" else "<"
        return [f"Use a value {op} {detail}"]
    if keyword == "format":
        return ["Use an ISO-8601 date-time such as 2024-01-01T00:00:00Z"]
    return ["Check the value against the Universal Schema definition"]


def _expected_type(detail: Any) -> str | None:
    if isinstance(detail, list):
        return next((t for t in detail if t != "null"), None)
    return detail if isinstance(detail, str) else None


class SchemaValidator:
    """Validates Universal documents and optionally repairs them.

    Validation never raises on bad input; violations come back as data.
    Auto-fix works on a deep copy and repeats fix rounds until nothing
    changes, then re-validates and reports whatever is left.
    """

    def __init__(
        self,
        schema: dict[str, Any] | None = None,
        max_fix_rounds: int = DEFAULT_MAX_FIX_ROUNDS,
    ) -> None:
        document_schema = schema or UNIVERSAL_DOCUMENT_SCHEMA
        Draft7Validator.check_schema(document_schema)
        self._document_validator = Draft7Validator(
            document_schema, format_checker=FORMAT_CHECKER
        )
        self._slide_validator = Draft7Validator(SLIDE_SCHEMA, format_checker=FORMAT_CHECKER)
        self._shape_validator = Draft7Validator(SHAPE_SCHEMA, format_checker=FORMAT_CHECKER)
        self.max_fix_rounds = max_fix_rounds

    # Public API -----------------------------------------------------------

    def validate(
        self, document: Any, options: AutoFixOptions | None = None
    ) -> ValidationResult:
        """Validate a whole document.

        Args:
            document: UniversalDocument model or its JSON dict
            options: Auto-fix options; auto-fix is off by default

        Returns:
            ValidationResult with residual violations and advisory warnings
        """
        return self._run(document, "document", options)

    def validate_slide(
        self, slide: Any, options: AutoFixOptions | None = None
    ) -> ValidationResult:
        """Validate one slide record on its own."""
        return self._run(slide, "slide", options)

    def validate_shape(
        self, shape: Any, options: AutoFixOptions | None = None
    ) -> ValidationResult:
        """Validate one shape record on its own."""
        return self._run(shape, "shape", options)

    def compliance_report(self, document: Any) -> ComplianceReport:
        """Score a document from 0 to 100 with per-section sub-scores."""
        result = self.validate(document)
        paths = [issue.path for issue in result.errors] + [w.path for w in result.warnings]

        def _score(count: int) -> int:
            return max(0, 100 - SCORE_PENALTY * count)

        shape_count = sum(1 for p in paths if "/shapes/" in p)
        slide_count = sum(1 for p in paths if p.startswith("slides") and "/shapes/" not in p)
        metadata_count = sum(1 for p in paths if p.startswith("metadata"))
        overall = _score(len(paths))

        recommendations = [w.recommendation for w in result.warnings]
        recommendations += [issue.suggestions[0] for issue in result.errors if issue.suggestions]

        return ComplianceReport(
            overall_score=overall,
            compliance=SectionScores(
                metadata=_score(metadata_count),
                slides=_score(slide_count),
                shapes=_score(shape_count),
                overall=overall,
            ),
            error_count=len(result.errors),
            warning_count=len(result.warnings),
            recommendations=list(dict.fromkeys(recommendations)),
        )

    # Core loop ------------------------------------------------------------

    def _run(
        self, instance: Any, scope: str, options: AutoFixOptions | None
    ) -> ValidationResult:
        options = options or AutoFixOptions()
        if isinstance(instance, BaseModel):
            instance = instance.model_dump(mode="json", by_alias=True, exclude_none=True)

        if not options.enable_auto_fix:
            violations = self._violations(instance, scope)
            return ValidationResult(
                is_valid=not violations,
                errors=[v.issue for v in violations],
                warnings=self._advisory_warnings(instance, scope),
            )

        working = copy.deepcopy(instance)
        fixes = self._auto_fix(working, scope, options)
        violations = self._violations(working, scope)
        if violations:
            logger.info(
                f"Auto-fix applied {fixes} fixes; {len(violations)} violations remain"
            )
        return ValidationResult(
            is_valid=not violations,
            errors=[v.issue for v in violations],
            warnings=self._advisory_warnings(working, scope),
            fixes_applied=fixes,
            fixed_document=working if isinstance(working, dict) else None,
        )

    def _auto_fix(self, working: Any, scope: str, options: AutoFixOptions) -> int:
        total = 0
        for _ in range(self.max_fix_rounds):
            applied = 0
            for violation in self._schema_violations(working, scope):
                if self._apply_fix(working, violation, options):
                    applied += 1
            if options.fix_inconsistent_data:
                applied += self._fix_inconsistencies(working, scope)
            if options.generate_missing_ids and scope == "document":
                applied += self._generate_missing_ids(working)
            total += applied
            if not applied:
                break
        return total

    # Violations -----------------------------------------------------------

    def _validator_for(self, scope: str) -> Draft7Validator:
        if scope == "slide":
            return self._slide_validator
        if scope == "shape":
            return self._shape_validator
        return self._document_validator

    def _violations(self, instance: Any, scope: str) -> list[_Violation]:
        return self._schema_violations(instance, scope) + self._consistency_violations(
            instance, scope
        )

    def _schema_violations(self, instance: Any, scope: str) -> list[_Violation]:
        violations: list[_Violation] = []
        seen_required: set[str] = set()

        for error in self._validator_for(scope).iter_errors(instance):
            keyword = str(error.validator)
            location = list(error.absolute_path)

            if keyword == "required":
                if not isinstance(error.instance, dict):
                    continue
                properties = error.schema.get("properties", {})
                for field in error.validator_value:
                    if field in error.instance:
                        continue
                    field_location = location + [field]
                    path = _join_path(field_location)
                    if path in seen_required:
                        continue
                    seen_required.add(path)
                    violations.append(
                        _Violation(
                            keyword="required",
                            location=field_location,
                            detail=field,
                            issue=ValidationIssue(
                                code="required",
                                path=path,
                                message=f"Missing required field '{field}'",
                                severity="error",
                                expected_type=_expected_type(
                                    properties.get(field, {}).get("type")
                                ),
                                suggestions=_suggestions("required", field, None),
                            ),
                        )
                    )
                continue

            field = str(location[-1]) if location else "document"
            violations.append(
                _Violation(
                    keyword=keyword,
                    location=location,
                    detail=error.validator_value,
                    issue=ValidationIssue(
                        code=keyword,
                        path=_join_path(location),
                        message=error.message,
                        severity="error" if keyword in ERROR_KEYWORDS else "warning",
                        expected_type=(
                            _expected_type(error.validator_value)
                            if keyword == "type"
                            else None
                        ),
                        actual_value=_summarize(error.instance),
                        suggestions=_suggestions(keyword, field, error.validator_value),
                    ),
                )
            )
        return violations

    def _consistency_violations(self, instance: Any, scope: str) -> list[_Violation]:
        violations: list[_Violation] = []
        for location, expected, code, message in self._inconsistencies(instance, scope):
            violations.append(
                _Violation(
                    keyword=code,
                    location=location,
                    detail=expected,
                    issue=ValidationIssue(
                        code=code,
                        path=_join_path(location),
                        message=message,
                        severity="warning",
                        expected_type="integer",
                        actual_value=_resolve(instance, location),
                        suggestions=[f"Set {location[-1]} to {expected}"],
                    ),
                )
            )
        return violations

    def _inconsistencies(
        self, instance: Any, scope: str
    ) -> list[tuple[list[Any], int, str, str]]:
        """Find count and index fields that disagree with array positions."""
        found: list[tuple[list[Any], int, str, str]] = []

        def _check_shapes(shapes: Any, prefix: list[Any]) -> None:
            if not isinstance(shapes, list):
                return
            for j, shape in enumerate(shapes):
                if isinstance(shape, dict) and "shapeIndex" in shape and shape["shapeIndex"] != j:
                    found.append(
                        (
                            prefix + [j, "shapeIndex"],
                            j,
                            "inconsistentShapeIndex",
                            f"shapeIndex {shape['shapeIndex']!r} does not match position {j}",
                        )
                    )

        if scope == "slide" and isinstance(instance, dict):
            _check_shapes(instance.get("shapes"), ["shapes"])
            return found
        if scope != "document" or not isinstance(instance, dict):
            return found

        slides = instance.get("slides")
        if not isinstance(slides, list):
            return found
        metadata = instance.get("metadata")
        if (
            isinstance(metadata, dict)
            and "slideCount" in metadata
            and metadata["slideCount"] != len(slides)
        ):
            found.append(
                (
                    ["metadata", "slideCount"],
                    len(slides),
                    "inconsistentSlideCount",
                    f"slideCount {metadata['slideCount']!r} does not match "
                    f"{len(slides)} slides",
                )
            )
        for i, slide in enumerate(slides):
            if not isinstance(slide, dict):
                continue
            if "slideIndex" in slide and slide["slideIndex"] != i:
                found.append(
                    (
                        ["slides", i, "slideIndex"],
                        i,
                        "inconsistentSlideIndex",
                        f"slideIndex {slide['slideIndex']!r} does not match position {i}",
                    )
                )
            _check_shapes(slide.get("shapes"), ["slides", i, "shapes"])
        return found

    # Fixes ----------------------------------------------------------------

    def _apply_fix(self, root: Any, violation: _Violation, options: AutoFixOptions) -> bool:
        if not violation.location:
            return False
        parent = _resolve(root, violation.location[:-1])
        key = violation.location[-1]
        if isinstance(parent, dict):
            if violation.keyword == "required":
                if not options.fix_missing_required or key in parent:
                    return False
                parent[key] = copy.deepcopy(FIELD_DEFAULTS.get(key))
                return True
            if key not in parent:
                return False
        elif isinstance(parent, list):
            if not isinstance(key, int) or not 0 <= key < len(parent):
                return False
        else:
            return False

        current = parent[key]
        keyword = violation.keyword
        if keyword == "type":
            if not options.fix_invalid_types:
                return False
            replacement = convert_to_type(current, violation.detail)
        elif keyword == "enum":
            if not options.fix_invalid_values or not violation.detail:
                return False
            replacement = violation.detail[0]
        elif keyword in RANGE_KEYWORDS:
            if not options.fix_invalid_values:
                return False
            replacement = self._clamp(current, keyword, violation.detail)
        elif keyword == "format":
            if not options.fix_invalid_values:
                return False
            parsed = parse_date_time(current)
            replacement = (parsed or datetime.now(timezone.utc)).isoformat()
        else:
            return False

        if replacement == current and type(replacement) is type(current):
            return False
        parent[key] = replacement
        return True

    @staticmethod
    def _clamp(value: Any, keyword: str, bound: float) -> Any:
        if keyword == "minimum":
            return bound
        if keyword == "maximum":
            return bound
        if keyword == "exclusiveMinimum":
            return bound + 1 if isinstance(value, int) else math.nextafter(bound, math.inf)
        return bound - 1 if isinstance(value, int) else math.nextafter(bound, -math.inf)

    def _fix_inconsistencies(self, root: Any, scope: str) -> int:
        fixed = 0
        for location, expected, _code, _message in self._inconsistencies(root, scope):
            parent = _resolve(root, location[:-1])
            if isinstance(parent, dict):
                parent[location[-1]] = expected
                fixed += 1
        return fixed

    @staticmethod
    def _generate_missing_ids(root: Any) -> int:
        if not isinstance(root, dict) or not isinstance(root.get("slides"), list):
            return 0
        generated = 0
        for i, slide in enumerate(root["slides"]):
            if not isinstance(slide, dict):
                continue
            if not slide.get("slideId"):
                slide["slideId"] = f"slide_{i + 1}"
                generated += 1
            shapes = slide.get("shapes")
            if not isinstance(shapes, list):
                continue
            for j, shape in enumerate(shapes):
                if isinstance(shape, dict) and not shape.get("shapeId"):
                    shape["shapeId"] = f"slide_{i + 1}_shape_{j + 1}"
                    generated += 1
        return generated

    # Advisory warnings ----------------------------------------------------

    def _advisory_warnings(self, instance: Any, scope: str) -> list[ValidationWarning]:
        warnings: list[ValidationWarning] = []
        if not isinstance(instance, dict):
            return warnings

        def _shape_warnings(shape: Any, prefix: str) -> None:
            if not isinstance(shape, dict):
                return
            geometry = shape.get("geometry")
            if not isinstance(geometry, dict):
                return
            width, height = geometry.get("width"), geometry.get("height")
            if not all(
                isinstance(v, (int, float)) and not isinstance(v, bool)
                for v in (width, height)
            ):
                return
            if width < MIN_SHAPE_DIMENSION or height < MIN_SHAPE_DIMENSION:
                warnings.append(
                    ValidationWarning(
                        path=f"{prefix}geometry" if prefix else "geometry",
                        message=f"Shape is very small ({width}x{height})",
                        recommendation="Check that the shape geometry is correct",
                        impact="medium",
                    )
                )

        def _slide_warnings(slide: Any, position: int | None, prefix: str) -> None:
            if not isinstance(slide, dict):
                return
            shapes = slide.get("shapes")
            if isinstance(shapes, list) and not shapes:
                label = f"Slide {position + 1}" if position is not None else "Slide"
                warnings.append(
                    ValidationWarning(
                        path=f"{prefix}shapes" if prefix else "shapes",
                        message=f"{label} has no shapes",
                        recommendation="Add content to the slide or remove it",
                        impact="medium",
                    )
                )
            if isinstance(shapes, list):
                for j, shape in enumerate(shapes):
                    _shape_warnings(shape, f"{prefix}shapes/{j}/")

        if scope == "shape":
            _shape_warnings(instance, "")
            return warnings
        if scope == "slide":
            _slide_warnings(instance, None, "")
            return warnings

        metadata = instance.get("metadata")
        if isinstance(metadata, dict):
            if metadata.get("author") is None:
                warnings.append(
                    ValidationWarning(
                        path="metadata/author",
                        message="Presentation author is not set",
                        recommendation="Add author information to the presentation metadata",
                        impact="low",
                    )
                )
            if metadata.get("subject") is None:
                warnings.append(
                    ValidationWarning(
                        path="metadata/subject",
                        message="Presentation subject is not set",
                        recommendation="Add a subject to improve document organization",
                        impact="low",
                    )
                )
        slides = instance.get("slides")
        if isinstance(slides, list):
            for i, slide in enumerate(slides):
                _slide_warnings(slide, i, f"slides/{i}/")
        return warnings


def validate_document(
    document: Any, options: AutoFixOptions | None = None
) -> ValidationResult:
    """Validate with a default SchemaValidator."""
    return SchemaValidator().validate(document, options)
