"""Job handlers run by the orchestrator."""

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.graph import ConversionConfig
from deckschema_core.pipeline.validator import SchemaValidator
from deckschema_core.schemas.jobs import JobType

from runner.orchestrator import JobHandler
from runner.storage import StorageBackend
from runner.tasks.extract_assets import create_extract_assets_handler
from runner.tasks.extract_metadata import create_extract_metadata_handler
from runner.tasks.json2pptx import create_json2pptx_handler
from runner.tasks.pptx2json import create_pptx2json_handler
from runner.tasks.thumbnails import create_thumbnails_handler


def build_handlers(
    engine: DocumentEngine,
    storage: StorageBackend | None = None,
    config: ConversionConfig | None = None,
    validator: SchemaValidator | None = None,
) -> dict[JobType, JobHandler]:
    """Create one handler per job type sharing the given collaborators."""
    return {
        JobType.PPTX_TO_JSON: create_pptx2json_handler(engine, storage, config),
        JobType.JSON_TO_PPTX: create_json2pptx_handler(engine, storage, validator),
        JobType.EXTRACT_ASSETS: create_extract_assets_handler(engine, storage),
        JobType.EXTRACT_METADATA: create_extract_metadata_handler(engine, storage),
        JobType.THUMBNAILS: create_thumbnails_handler(engine, storage),
    }


__all__ = [
    "build_handlers",
    "create_extract_assets_handler",
    "create_extract_metadata_handler",
    "create_json2pptx_handler",
    "create_pptx2json_handler",
    "create_thumbnails_handler",
]
