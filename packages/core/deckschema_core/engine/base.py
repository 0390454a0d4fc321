"""Document engine interface.

The engine is the only component that understands the binary presentation
format. Everything above it works on the handles defined here, so tests
can swap in a fake engine and deployments can swap in a different backend.
Handle methods are blocking; async callers wrap them in ``asyncio.to_thread``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from types import TracebackType
from typing import Any, Literal

from pydantic import BaseModel, Field

from deckschema_core.schemas.universal import ShapeType

RenderFormat = Literal["pdf", "png", "assets"]


class RenderedAsset(BaseModel):
    """A binary artifact produced by ``DocumentHandle.render``."""

    name: str = Field(..., description="Suggested file name")
    content_type: str = Field(..., description="MIME type")
    data: bytes = Field(..., description="Raw bytes")
    kind: str = Field("image", description="image, media, thumbnail or pdf")
    slide_index: int | None = Field(None, description="Owning slide, if any")


class ShapeHandle(ABC):
    """Read access to one shape."""

    @abstractmethod
    def shape_type(self) -> ShapeType:
        """Return the normalized shape type."""

    @abstractmethod
    def geometry(self) -> dict[str, float]:
        """Return ``{x, y, width, height, rotation}`` in points."""

    @abstractmethod
    def name(self) -> str:
        """Return the shape name."""

    def shape_id(self) -> str | None:
        return None

    def text_frame(self) -> dict[str, Any] | None:
        """Return ``{text, paragraphs}`` or None for shapes without text."""
        return None

    def fill(self) -> dict[str, Any] | None:
        return None

    def line(self) -> dict[str, Any] | None:
        return None

    def effects(self) -> dict[str, Any] | None:
        return None

    def payload(self) -> dict[str, Any] | None:
        """Return the type-specific payload tagged with ``kind``."""
        return None


class SlideHandle(ABC):
    """Read access to one slide (or master/layout slide)."""

    @abstractmethod
    def shapes(self) -> list[ShapeHandle]:
        """Return shapes in source order."""

    def name(self) -> str:
        return ""

    def slide_id(self) -> str | None:
        return None

    def background(self) -> dict[str, Any] | None:
        return None

    def notes(self) -> str | None:
        return None

    def transition(self) -> dict[str, Any] | None:
        return None


class DocumentHandle(ABC):
    """An opened document.

    Handles own native resources and must be disposed on every exit path;
    they support the context manager protocol for that purpose.
    """

    @abstractmethod
    def slide_count(self) -> int:
        """Return the number of slides."""

    @abstractmethod
    def slide(self, index: int) -> SlideHandle:
        """Return the slide at ``index``."""

    @abstractmethod
    def document_properties(self) -> dict[str, Any]:
        """Return title, author, company and other document properties."""

    def slide_size(self) -> dict[str, Any] | None:
        return None

    def master_slides(self) -> list[SlideHandle]:
        return []

    def layout_slides(self) -> list[SlideHandle]:
        return []

    def theme(self) -> dict[str, Any] | None:
        return None

    @abstractmethod
    def render(
        self, fmt: RenderFormat, options: dict[str, Any] | None = None
    ) -> bytes | list[RenderedAsset]:
        """Render the document.

        Args:
            fmt: ``pdf`` returns bytes; ``png`` and ``assets`` return assets
            options: Engine-specific render options

        Returns:
            Rendered bytes or a list of assets

        Raises:
            EngineCapabilityError: If the engine cannot produce ``fmt``
        """

    @abstractmethod
    def save(self, path: str | Path, fmt: str = "pptx") -> None:
        """Save the document to ``path``."""

    @abstractmethod
    def dispose(self) -> None:
        """Release native resources. Safe to call more than once."""

    def __enter__(self) -> "DocumentHandle":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()


class DocumentWriter(ABC):
    """Builds a new document from Universal Schema content."""

    @abstractmethod
    def set_slide_size(self, width: float, height: float) -> None:
        """Set slide dimensions in points."""

    @abstractmethod
    def set_properties(self, properties: dict[str, Any]) -> None:
        """Set document properties (title, author, subject, keywords...)."""

    @abstractmethod
    def add_slide(self) -> int:
        """Append a blank slide and return its index."""

    @abstractmethod
    def add_text_box(
        self,
        slide_index: int,
        geometry: dict[str, float],
        text: str,
        font: dict[str, Any] | None = None,
    ) -> None:
        """Add a text box at ``geometry``."""

    @abstractmethod
    def add_rectangle(
        self,
        slide_index: int,
        geometry: dict[str, float],
        fill_rgb: tuple[int, int, int] | None = None,
    ) -> None:
        """Add a rectangle, optionally with a solid fill."""

    def set_background(self, slide_index: int, fill_rgb: tuple[int, int, int]) -> None:
        return None

    def set_notes(self, slide_index: int, text: str) -> None:
        return None

    @abstractmethod
    def save(self, path: str | Path) -> None:
        """Write the document to ``path``."""

    def dispose(self) -> None:
        return None


class DocumentEngine(ABC):
    """Factory for document handles and writers."""

    name: str = "engine"
    version: str = "0"
    supported_extensions: tuple[str, ...] = (".pptx", ".ppt")

    @abstractmethod
    def open(self, path: str | Path) -> DocumentHandle:
        """Open ``path``.

        Raises:
            EngineOpenError: With reason unsupported-format, corrupt or io-error
        """

    @abstractmethod
    def create_writer(self) -> DocumentWriter:
        """Return a writer for a new empty document."""
