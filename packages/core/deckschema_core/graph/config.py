"""Configuration for the conversion graph."""

from dataclasses import dataclass

from deckschema_core.pipeline.extractor import SUPPORTED_EXTENSIONS
from deckschema_core.pipeline.validator import DEFAULT_MAX_FIX_ROUNDS
from deckschema_core.schemas.validation import AutoFixOptions


@dataclass(frozen=True)
class ConversionConfig:
    """Configuration values for one conversion run."""

    # Accepted source extensions (lower case)
    supported_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS

    # Skip the enrichment stage entirely
    enable_enrichment: bool = True

    # Validation / auto-fix
    auto_fix: bool = True
    generate_missing_ids: bool = False
    max_fix_rounds: int = DEFAULT_MAX_FIX_ROUNDS

    def to_auto_fix_options(self) -> AutoFixOptions:
        """Translate into validator options."""
        return AutoFixOptions(
            enable_auto_fix=self.auto_fix,
            generate_missing_ids=self.generate_missing_ids,
        )
