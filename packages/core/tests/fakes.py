"""Deterministic in-memory document engine for tests."""

from pathlib import Path
from typing import Any

from deckschema_core.engine.base import (
    DocumentEngine,
    DocumentHandle,
    DocumentWriter,
    RenderedAsset,
    ShapeHandle,
    SlideHandle,
)
from deckschema_core.errors import EngineCapabilityError
from deckschema_core.schemas.universal import ShapeType


class FakeShape(ShapeHandle):
    """Shape with fixed values; ``broken`` makes geometry raise."""

    def __init__(
        self,
        name: str = "Box",
        shape_type: ShapeType = ShapeType.TEXT_BOX,
        geometry: dict[str, Any] | None = None,
        text: str | None = None,
        fill: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
        broken: bool = False,
        broken_fill: bool = False,
    ) -> None:
        self._name = name
        self._type = shape_type
        self._geometry = geometry or {"x": 10, "y": 20, "width": 200, "height": 40, "rotation": 0}
        self._text = text
        self._fill = fill
        self._payload = payload
        self._broken = broken
        self._broken_fill = broken_fill

    def shape_type(self) -> ShapeType:
        return self._type

    def geometry(self) -> dict[str, Any]:
        if self._broken:
            raise RuntimeError("geometry unavailable")
        return dict(self._geometry)

    def name(self) -> str:
        return self._name

    def text_frame(self) -> dict[str, Any] | None:
        if self._text is None:
            return None
        return {
            "text": self._text,
            "paragraphs": [
                {"portions": [{"text": self._text, "fontName": "Calibri", "fontHeight": 18}]}
            ],
        }

    def fill(self) -> dict[str, Any] | None:
        if self._broken_fill:
            raise RuntimeError("fill unavailable")
        return self._fill

    def payload(self) -> dict[str, Any] | None:
        return self._payload


class FakeSlide(SlideHandle):
    """Slide holding FakeShapes; ``broken`` makes the shape list raise."""

    def __init__(
        self,
        shapes: list[FakeShape] | None = None,
        name: str = "",
        notes: str | None = None,
        broken: bool = False,
    ) -> None:
        self._shapes = shapes or []
        self._name = name
        self._notes = notes
        self._broken = broken

    def shapes(self) -> list[ShapeHandle]:
        if self._broken:
            raise RuntimeError("slide unreadable")
        return list(self._shapes)

    def name(self) -> str:
        return self._name

    def notes(self) -> str | None:
        return self._notes


class FakeDocument(DocumentHandle):
    """Opened fake document; records dispose calls."""

    def __init__(
        self,
        slides: list[FakeSlide],
        properties: dict[str, Any] | None = None,
        assets: list[RenderedAsset] | None = None,
    ) -> None:
        self._slides = slides
        self._properties = properties or {}
        self._assets = assets or []
        self.dispose_count = 0

    def slide_count(self) -> int:
        return len(self._slides)

    def slide(self, index: int) -> SlideHandle:
        return self._slides[index]

    def document_properties(self) -> dict[str, Any]:
        return dict(self._properties)

    def slide_size(self) -> dict[str, Any] | None:
        return {"width": 960, "height": 540, "type": "OnScreen16x9"}

    def render(
        self, fmt: str, options: dict[str, Any] | None = None
    ) -> bytes | list[RenderedAsset]:
        if fmt == "assets":
            return list(self._assets)
        if fmt == "png":
            return [
                RenderedAsset(
                    name=f"slide_{i + 1}.png",
                    content_type="image/png",
                    data=b"\x89PNG fake",
                    kind="thumbnail",
                    slide_index=i,
                )
                for i in range(len(self._slides))
            ]
        raise EngineCapabilityError(f"Fake engine cannot render {fmt}")

    def save(self, path: str | Path, fmt: str = "pptx") -> None:
        Path(path).write_bytes(b"fake document")

    def dispose(self) -> None:
        self.dispose_count += 1


class FakeWriter(DocumentWriter):
    """Writer that records every call."""

    def __init__(self) -> None:
        self.slides: list[list[tuple[str, Any]]] = []
        self.properties: dict[str, Any] = {}
        self.size: tuple[float, float] | None = None
        self.notes: dict[int, str] = {}
        self.disposed = False

    def set_slide_size(self, width: float, height: float) -> None:
        self.size = (width, height)

    def set_properties(self, properties: dict[str, Any]) -> None:
        self.properties = dict(properties)

    def add_slide(self) -> int:
        self.slides.append([])
        return len(self.slides) - 1

    def add_text_box(
        self,
        slide_index: int,
        geometry: dict[str, float],
        text: str,
        font: dict[str, Any] | None = None,
    ) -> None:
        self.slides[slide_index].append(("text", text, geometry))

    def add_rectangle(
        self,
        slide_index: int,
        geometry: dict[str, float],
        fill_rgb: tuple[int, int, int] | None = None,
    ) -> None:
        self.slides[slide_index].append(("rect", fill_rgb, geometry))

    def set_notes(self, slide_index: int, text: str) -> None:
        self.notes[slide_index] = text

    def save(self, path: str | Path) -> None:
        Path(path).write_bytes(b"reconstructed")

    def dispose(self) -> None:
        self.disposed = True


class FakeEngine(DocumentEngine):
    """Engine that serves one prepared FakeDocument."""

    name = "fake"
    version = "1.0"

    def __init__(
        self, document: FakeDocument | None = None, open_error: Exception | None = None
    ) -> None:
        self.document = document or FakeDocument([])
        self.open_error = open_error
        self.writers: list[FakeWriter] = []

    def open(self, path: str | Path) -> DocumentHandle:
        if self.open_error is not None:
            raise self.open_error
        return self.document

    def create_writer(self) -> DocumentWriter:
        writer = FakeWriter()
        self.writers.append(writer)
        return writer


