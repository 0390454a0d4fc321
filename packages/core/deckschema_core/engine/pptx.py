"""Document engine backed by python-pptx.

Geometry is reported in points. PDF rendering needs a headless LibreOffice
binary (``soffice``); PNG thumbnails are rasterised from that PDF with
pdf2image. Legacy ``.ppt`` files are converted to ``.pptx`` through the same
binary before opening.
"""

import shutil
import subprocess
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from importlib import metadata
from io import BytesIO
from pathlib import Path
from typing import Any

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_COLOR_TYPE, MSO_FILL_TYPE
from pptx.enum.shapes import MSO_SHAPE, MSO_SHAPE_TYPE
from pptx.exc import PackageNotFoundError
from pptx.shapes.group import GroupShape
from pptx.shapes.picture import Movie, Picture
from pptx.util import Pt

from deckschema_core.engine.base import (
    DocumentEngine,
    DocumentHandle,
    DocumentWriter,
    RenderedAsset,
    RenderFormat,
    ShapeHandle,
    SlideHandle,
)
from deckschema_core.errors import EngineCapabilityError, EngineOpenError
from deckschema_core.schemas.universal import ShapeType
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)

EMU_PER_POINT = 12700
BLANK_LAYOUT_INDEX = 6
DEFAULT_CONVERT_TIMEOUT = 120  # seconds

_NS = {"a": "http://schemas.openxmlformats.org/drawingml/2006/main"}
_APP_NS = {
    "ep": "http://schemas.openxmlformats.org/officeDocument/2006/extended-properties"
}

_OPENXML_EXTENSIONS = (".pptx", ".pptm", ".ppsx", ".potx")
_LEGACY_EXTENSIONS = (".ppt",)

_SHAPE_TYPE_MAP = {
    MSO_SHAPE_TYPE.TEXT_BOX: ShapeType.TEXT_BOX,
    MSO_SHAPE_TYPE.AUTO_SHAPE: ShapeType.AUTO_SHAPE,
    MSO_SHAPE_TYPE.CALLOUT: ShapeType.AUTO_SHAPE,
    MSO_SHAPE_TYPE.CHART: ShapeType.CHART,
    MSO_SHAPE_TYPE.TABLE: ShapeType.TABLE,
    MSO_SHAPE_TYPE.PICTURE: ShapeType.PICTURE,
    MSO_SHAPE_TYPE.LINKED_PICTURE: ShapeType.PICTURE,
    MSO_SHAPE_TYPE.MEDIA: ShapeType.VIDEO,
    MSO_SHAPE_TYPE.WEB_VIDEO: ShapeType.VIDEO,
    MSO_SHAPE_TYPE.GROUP: ShapeType.GROUP,
    MSO_SHAPE_TYPE.LINE: ShapeType.CONNECTOR,
    MSO_SHAPE_TYPE.DIAGRAM: ShapeType.SMART_ART,
    MSO_SHAPE_TYPE.IGX_GRAPHIC: ShapeType.SMART_ART,
    MSO_SHAPE_TYPE.EMBEDDED_OLE_OBJECT: ShapeType.OLE_OBJECT,
    MSO_SHAPE_TYPE.LINKED_OLE_OBJECT: ShapeType.OLE_OBJECT,
    MSO_SHAPE_TYPE.PLACEHOLDER: ShapeType.PLACEHOLDER,
    MSO_SHAPE_TYPE.FREEFORM: ShapeType.FREEFORM,
}

_FILL_TYPE_NAMES = {
    MSO_FILL_TYPE.SOLID: "Solid",
    MSO_FILL_TYPE.GRADIENT: "Gradient",
    MSO_FILL_TYPE.PATTERNED: "Pattern",
    MSO_FILL_TYPE.PICTURE: "Picture",
    MSO_FILL_TYPE.BACKGROUND: "NoFill",
    MSO_FILL_TYPE.TEXTURED: "Texture",
}

# Theme XML element -> color scheme key
_THEME_XML_SLOTS = {
    "dk1": "text1",
    "lt1": "background1",
    "dk2": "text2",
    "lt2": "background2",
    "accent1": "accent1",
    "accent2": "accent2",
    "accent3": "accent3",
    "accent4": "accent4",
    "accent5": "accent5",
    "accent6": "accent6",
    "hlink": "hyperlink",
    "folHlink": "followedHyperlink",
}

# MSO_THEME_COLOR member name -> color scheme key
_THEME_COLOR_SLOTS = {
    "DARK_1": "text1",
    "TEXT_1": "text1",
    "LIGHT_1": "background1",
    "BACKGROUND_1": "background1",
    "DARK_2": "text2",
    "TEXT_2": "text2",
    "LIGHT_2": "background2",
    "BACKGROUND_2": "background2",
    "HYPERLINK": "hyperlink",
    "FOLLOWED_HYPERLINK": "followedHyperlink",
}


def _emu_to_pt(value: int | None) -> float:
    if not value:
        return 0.0
    return round(value / EMU_PER_POINT, 2)


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def _hex_to_rgb(value: str) -> dict[str, Any] | None:
    value = value.lstrip("#")
    if len(value) != 6:
        return None
    try:
        r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return None
    return {"type": "RGB", "r": r, "g": g, "b": b}


def _slide_size_type(width: float, height: float) -> str:
    if not width or not height:
        return "Custom"
    ratio = round(width / height, 2)
    if ratio == round(16 / 9, 2):
        return "OnScreen16x9"
    if ratio == round(16 / 10, 2):
        return "OnScreen16x10"
    if ratio == round(4 / 3, 2):
        return "OnScreen"
    return "Custom"


def _find_soffice() -> str | None:
    return shutil.which("soffice") or shutil.which("libreoffice")


def _soffice_convert(
    source: Path, target_format: str, out_dir: Path, timeout: float
) -> Path:
    """Convert ``source`` with headless LibreOffice and return the output path."""
    binary = _find_soffice()
    if not binary:
        raise EngineCapabilityError(
            f"Converting to {target_format} requires LibreOffice (soffice) on PATH"
        )
    subprocess.run(
        [
            binary,
            "--headless",
            "--convert-to",
            target_format,
            "--outdir",
            str(out_dir),
            str(source),
        ],
        check=True,
        capture_output=True,
        timeout=timeout,
    )
    output = out_dir / f"{source.stem}.{target_format}"
    if not output.exists():
        raise EngineCapabilityError(f"LibreOffice produced no {target_format} output")
    return output


class PptxShapeHandle(ShapeHandle):
    """Shape handle over a python-pptx shape."""

    def __init__(self, shape: Any, document: "PptxDocumentHandle") -> None:
        self._shape = shape
        self._document = document

    def shape_type(self) -> ShapeType:
        shape_type = self._shape.shape_type
        if shape_type is None:
            return ShapeType.UNKNOWN
        mapped = _SHAPE_TYPE_MAP.get(shape_type, ShapeType.UNKNOWN)
        if mapped is ShapeType.VIDEO and isinstance(self._shape, Movie):
            if _enum_name(self._shape.media_type) == "SOUND":
                return ShapeType.AUDIO
        return mapped

    def geometry(self) -> dict[str, float]:
        rotation = float(getattr(self._shape, "rotation", 0.0) or 0.0) % 360
        return {
            "x": _emu_to_pt(self._shape.left),
            "y": _emu_to_pt(self._shape.top),
            "width": _emu_to_pt(self._shape.width),
            "height": _emu_to_pt(self._shape.height),
            "rotation": rotation,
        }

    def name(self) -> str:
        return self._shape.name or ""

    def shape_id(self) -> str | None:
        return str(self._shape.shape_id)

    def text_frame(self) -> dict[str, Any] | None:
        if not getattr(self._shape, "has_text_frame", False):
            return None
        frame = self._shape.text_frame
        paragraphs = []
        for p_index, paragraph in enumerate(frame.paragraphs):
            portions = []
            for r_index, run in enumerate(paragraph.runs):
                font = run.font
                portions.append(
                    {
                        "portionIndex": r_index,
                        "text": run.text,
                        "fontName": font.name,
                        "fontHeight": font.size.pt if font.size is not None else None,
                        "fontBold": font.bold,
                        "fontItalic": font.italic,
                        "fontColor": self._document.resolve_color(font.color),
                    }
                )
            paragraphs.append(
                {
                    "paragraphIndex": p_index,
                    "portions": portions,
                    "alignment": _enum_name(paragraph.alignment),
                }
            )
        return {"text": frame.text, "paragraphs": paragraphs}

    def fill(self) -> dict[str, Any] | None:
        fill = getattr(self._shape, "fill", None)
        if fill is None:
            return None
        return self._document.describe_fill(fill)

    def line(self) -> dict[str, Any] | None:
        line = getattr(self._shape, "line", None)
        if line is None:
            return None
        color = None
        if line.fill.type == MSO_FILL_TYPE.SOLID:
            color = self._document.resolve_color(line.fill.fore_color)
        return {
            "width": line.width.pt if line.width else None,
            "dashStyle": _enum_name(line.dash_style),
            "color": color,
        }

    def effects(self) -> dict[str, Any] | None:
        shadow = getattr(self._shape, "shadow", None)
        if shadow is None:
            return None
        return {"shadowInherited": bool(shadow.inherit)}

    def payload(self) -> dict[str, Any] | None:
        shape = self._shape
        if getattr(shape, "has_table", False):
            table = shape.table
            cells = [[cell.text for cell in row.cells] for row in table.rows]
            return {
                "kind": "table",
                "rowCount": len(table.rows),
                "columnCount": len(table.columns),
                "cells": cells,
                "firstRowHeader": bool(table.first_row),
            }
        if getattr(shape, "has_chart", False):
            chart = shape.chart
            title = None
            if chart.has_title and chart.chart_title.has_text_frame:
                title = chart.chart_title.text_frame.text
            categories: list[str] = []
            if len(chart.plots):
                categories = [str(c) for c in chart.plots[0].categories]
            return {
                "kind": "chart",
                "chartType": _enum_name(chart.chart_type),
                "title": title,
                "hasLegend": bool(chart.has_legend),
                "seriesCount": len(list(chart.series)),
                "categories": categories,
            }
        if isinstance(shape, Movie):
            media_type = "audio" if _enum_name(shape.media_type) == "SOUND" else "video"
            return {"kind": "media", "mediaType": media_type}
        if isinstance(shape, Picture):
            image = shape.image
            return {
                "kind": "picture",
                "contentType": image.content_type,
                "filename": image.filename,
                "sizeBytes": len(image.blob),
                "imageHash": image.sha1,
            }
        if isinstance(shape, GroupShape):
            return {
                "kind": "group",
                "childCount": len(shape.shapes),
                "childNames": [child.name for child in shape.shapes],
            }
        return None


class PptxSlideHandle(SlideHandle):
    """Slide handle over a python-pptx slide, master or layout."""

    def __init__(self, slide: Any, document: "PptxDocumentHandle") -> None:
        self._slide = slide
        self._document = document

    def shapes(self) -> list[ShapeHandle]:
        return [PptxShapeHandle(shape, self._document) for shape in self._slide.shapes]

    def name(self) -> str:
        return self._slide.name or ""

    def slide_id(self) -> str | None:
        slide_id = getattr(self._slide, "slide_id", None)
        return str(slide_id) if slide_id is not None else None

    def background(self) -> dict[str, Any] | None:
        if getattr(self._slide, "follow_master_background", True):
            return None
        return self._document.describe_fill(self._slide.background.fill)

    def notes(self) -> str | None:
        if not getattr(self._slide, "has_notes_slide", False):
            return None
        frame = self._slide.notes_slide.notes_text_frame
        return frame.text if frame is not None else None


class PptxDocumentHandle(DocumentHandle):
    """Opened ``.pptx`` document."""

    def __init__(self, path: Path, scratch_dir: Path | None = None) -> None:
        self._path = path
        self._scratch_dir = scratch_dir
        self._presentation = Presentation(str(path))
        self._theme: dict[str, Any] | None = None
        self._theme_loaded = False
        self._disposed = False

    # Colors ---------------------------------------------------------------

    def resolve_color(self, color: Any) -> dict[str, Any] | None:
        """Convert a python-pptx ColorFormat into an RGB dict."""
        if color is None or color.type is None:
            return None
        if color.type == MSO_COLOR_TYPE.RGB:
            r, g, b = color.rgb
            return {"type": "RGB", "r": r, "g": g, "b": b}
        if color.type == MSO_COLOR_TYPE.SCHEME:
            name = _enum_name(color.theme_color) or ""
            slot = _THEME_COLOR_SLOTS.get(name)
            if slot is None and name.startswith("ACCENT_"):
                slot = f"accent{name.split('_', 1)[1]}"
            theme = self.theme() or {}
            hex_value = theme.get("colorScheme", {}).get(slot or "")
            return _hex_to_rgb(hex_value) if hex_value else None
        return None

    def describe_fill(self, fill: Any) -> dict[str, Any]:
        fill_type = fill.type
        description: dict[str, Any] = {
            "type": _FILL_TYPE_NAMES.get(fill_type, "NoFill") if fill_type else "NoFill"
        }
        if fill_type == MSO_FILL_TYPE.SOLID:
            description["solidFillColor"] = self.resolve_color(fill.fore_color)
        return description

    # Document -------------------------------------------------------------

    def slide_count(self) -> int:
        return len(self._presentation.slides)

    def slide(self, index: int) -> SlideHandle:
        return PptxSlideHandle(self._presentation.slides[index], self)

    def document_properties(self) -> dict[str, Any]:
        core = self._presentation.core_properties
        return {
            "title": core.title or None,
            "subject": core.subject or None,
            "author": core.author or None,
            "company": self._company(),
            "category": core.category or None,
            "keywords": core.keywords or None,
            "comments": core.comments or None,
            "lastModifiedBy": core.last_modified_by or None,
            "createdTime": core.created,
            "lastSavedTime": core.modified,
            "revision": core.revision or 1,
        }

    def slide_size(self) -> dict[str, Any] | None:
        width = _emu_to_pt(self._presentation.slide_width)
        height = _emu_to_pt(self._presentation.slide_height)
        if not width or not height:
            return None
        return {"width": width, "height": height, "type": _slide_size_type(width, height)}

    def master_slides(self) -> list[SlideHandle]:
        return [PptxSlideHandle(m, self) for m in self._presentation.slide_masters]

    def layout_slides(self) -> list[SlideHandle]:
        return [
            PptxSlideHandle(layout, self)
            for master in self._presentation.slide_masters
            for layout in master.slide_layouts
        ]

    def theme(self) -> dict[str, Any] | None:
        if not self._theme_loaded:
            self._theme = self._read_theme()
            self._theme_loaded = True
        return self._theme

    def _read_theme(self) -> dict[str, Any] | None:
        with zipfile.ZipFile(self._path) as package:
            theme_parts = sorted(
                n for n in package.namelist() if n.startswith("ppt/theme/theme")
            )
            if not theme_parts:
                return None
            root = ET.fromstring(package.read(theme_parts[0]))

        theme: dict[str, Any] = {"name": root.get("name") or "Office Theme"}
        scheme = root.find(".//a:clrScheme", _NS)
        colors: dict[str, str] = {}
        if scheme is not None:
            for child in scheme:
                tag = child.tag.split("}", 1)[-1]
                slot = _THEME_XML_SLOTS.get(tag)
                if slot is None:
                    continue
                srgb = child.find("a:srgbClr", _NS)
                sys_clr = child.find("a:sysClr", _NS)
                value = None
                if srgb is not None:
                    value = srgb.get("val")
                elif sys_clr is not None:
                    value = sys_clr.get("lastClr")
                if value:
                    colors[slot] = f"#{value.lower()}"
        theme["colorScheme"] = colors

        fonts: dict[str, str] = {}
        for key, xpath in (("majorFont", ".//a:majorFont/a:latin"), ("minorFont", ".//a:minorFont/a:latin")):
            latin = root.find(xpath, _NS)
            if latin is not None and latin.get("typeface"):
                fonts[key] = latin.get("typeface")
        theme["fontScheme"] = fonts
        return theme

    def _company(self) -> str | None:
        with zipfile.ZipFile(self._path) as package:
            if "docProps/app.xml" not in package.namelist():
                return None
            root = ET.fromstring(package.read("docProps/app.xml"))
        company = root.find("ep:Company", _APP_NS)
        return company.text if company is not None and company.text else None

    # Rendering ------------------------------------------------------------

    def render(
        self, fmt: RenderFormat, options: dict[str, Any] | None = None
    ) -> bytes | list[RenderedAsset]:
        options = options or {}
        if fmt == "pdf":
            return self._render_pdf(options)
        if fmt == "png":
            return self._render_png(options)
        if fmt == "assets":
            return self._collect_assets()
        raise EngineCapabilityError(f"Unsupported render format: {fmt}")

    def _render_pdf(self, options: dict[str, Any]) -> bytes:
        timeout = float(options.get("timeout", DEFAULT_CONVERT_TIMEOUT))
        with tempfile.TemporaryDirectory(prefix="deckschema-pdf-") as tmp:
            output = _soffice_convert(self._path, "pdf", Path(tmp), timeout)
            return output.read_bytes()

    def _render_png(self, options: dict[str, Any]) -> list[RenderedAsset]:
        from pdf2image import convert_from_bytes

        pdf_data = self._render_pdf(options)
        images = convert_from_bytes(pdf_data, dpi=int(options.get("dpi", 96)), fmt="PNG")
        max_width = options.get("width")
        assets = []
        for index, image in enumerate(images):
            if max_width:
                image.thumbnail((int(max_width), int(max_width)))
            buffer = BytesIO()
            image.save(buffer, format="PNG")
            assets.append(
                RenderedAsset(
                    name=f"slide_{index + 1}.png",
                    content_type="image/png",
                    data=buffer.getvalue(),
                    kind="thumbnail",
                    slide_index=index,
                )
            )
        return assets

    def _collect_assets(self) -> list[RenderedAsset]:
        assets: list[RenderedAsset] = []
        seen: set[str] = set()

        def _walk(shapes: Any, slide_index: int) -> None:
            for shape in shapes:
                if isinstance(shape, GroupShape):
                    _walk(shape.shapes, slide_index)
                    continue
                if not isinstance(shape, Picture) or isinstance(shape, Movie):
                    continue
                try:
                    image = shape.image
                except (KeyError, ValueError) as e:
                    logger.warning(
                        f"Skipping unreadable image on slide={slide_index}: {e}"
                    )
                    continue
                if image.sha1 in seen:
                    continue
                seen.add(image.sha1)
                assets.append(
                    RenderedAsset(
                        name=f"slide{slide_index + 1}_{shape.shape_id}.{image.ext}",
                        content_type=image.content_type,
                        data=image.blob,
                        kind="image",
                        slide_index=slide_index,
                    )
                )

        for index, slide in enumerate(self._presentation.slides):
            _walk(slide.shapes, index)
        return assets

    # Lifecycle ------------------------------------------------------------

    def save(self, path: str | Path, fmt: str = "pptx") -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "pptx":
            self._presentation.save(str(target))
            return
        if fmt == "pdf":
            target.write_bytes(self._render_pdf({}))
            return
        raise EngineCapabilityError(f"Unsupported save format: {fmt}")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._presentation = None
        if self._scratch_dir is not None:
            shutil.rmtree(self._scratch_dir, ignore_errors=True)


class PptxDocumentWriter(DocumentWriter):
    """Writes a new ``.pptx`` from scratch."""

    def __init__(self) -> None:
        self._presentation = Presentation()

    def set_slide_size(self, width: float, height: float) -> None:
        self._presentation.slide_width = Pt(width)
        self._presentation.slide_height = Pt(height)

    def set_properties(self, properties: dict[str, Any]) -> None:
        core = self._presentation.core_properties
        for key, attr in (
            ("title", "title"),
            ("subject", "subject"),
            ("author", "author"),
            ("keywords", "keywords"),
            ("comments", "comments"),
            ("category", "category"),
        ):
            value = properties.get(key)
            if isinstance(value, str):
                setattr(core, attr, value)
        revision = properties.get("revision")
        if isinstance(revision, int) and revision >= 1:
            core.revision = revision

    def add_slide(self) -> int:
        layouts = self._presentation.slide_layouts
        layout = layouts[BLANK_LAYOUT_INDEX] if len(layouts) > BLANK_LAYOUT_INDEX else layouts[-1]
        self._presentation.slides.add_slide(layout)
        return len(self._presentation.slides) - 1

    def _slide(self, index: int) -> Any:
        return self._presentation.slides[index]

    def add_text_box(
        self,
        slide_index: int,
        geometry: dict[str, float],
        text: str,
        font: dict[str, Any] | None = None,
    ) -> None:
        box = self._slide(slide_index).shapes.add_textbox(
            Pt(geometry["x"]), Pt(geometry["y"]), Pt(geometry["width"]), Pt(geometry["height"])
        )
        box.rotation = geometry.get("rotation", 0)
        frame = box.text_frame
        frame.word_wrap = True
        frame.text = text
        if font:
            for paragraph in frame.paragraphs:
                for run in paragraph.runs:
                    if font.get("name"):
                        run.font.name = font["name"]
                    if font.get("size"):
                        run.font.size = Pt(font["size"])
                    if font.get("bold") is not None:
                        run.font.bold = font["bold"]
                    if font.get("italic") is not None:
                        run.font.italic = font["italic"]

    def add_rectangle(
        self,
        slide_index: int,
        geometry: dict[str, float],
        fill_rgb: tuple[int, int, int] | None = None,
    ) -> None:
        shape = self._slide(slide_index).shapes.add_shape(
            MSO_SHAPE.RECTANGLE,
            Pt(geometry["x"]),
            Pt(geometry["y"]),
            Pt(geometry["width"]),
            Pt(geometry["height"]),
        )
        shape.rotation = geometry.get("rotation", 0)
        if fill_rgb is not None:
            shape.fill.solid()
            shape.fill.fore_color.rgb = RGBColor(*fill_rgb)
        else:
            shape.fill.background()

    def set_background(self, slide_index: int, fill_rgb: tuple[int, int, int]) -> None:
        fill = self._slide(slide_index).background.fill
        fill.solid()
        fill.fore_color.rgb = RGBColor(*fill_rgb)

    def set_notes(self, slide_index: int, text: str) -> None:
        self._slide(slide_index).notes_slide.notes_text_frame.text = text

    def save(self, path: str | Path) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self._presentation.save(str(target))

    def dispose(self) -> None:
        self._presentation = None


class PptxEngine(DocumentEngine):
    """Engine that reads and writes PowerPoint files with python-pptx."""

    name = "python-pptx"
    supported_extensions = _OPENXML_EXTENSIONS + _LEGACY_EXTENSIONS

    def __init__(self, convert_timeout: float = DEFAULT_CONVERT_TIMEOUT) -> None:
        try:
            self.version = metadata.version("python-pptx")
        except metadata.PackageNotFoundError:
            self.version = "unknown"
        self._convert_timeout = convert_timeout

    def open(self, path: str | Path) -> DocumentHandle:
        source = Path(path)
        extension = source.suffix.lower()
        if extension not in self.supported_extensions:
            raise EngineOpenError(
                f"Unsupported file type: {extension or '(none)'}",
                reason="unsupported-format",
            )
        if not source.is_file():
            raise EngineOpenError(f"File does not exist: {source}", reason="io-error")

        scratch_dir = None
        if extension in _LEGACY_EXTENSIONS:
            scratch_dir = Path(tempfile.mkdtemp(prefix="deckschema-ppt-"))
            try:
                source = _soffice_convert(
                    source, "pptx", scratch_dir, self._convert_timeout
                )
            except EngineCapabilityError as e:
                shutil.rmtree(scratch_dir, ignore_errors=True)
                raise EngineOpenError(str(e), reason="unsupported-format") from e
            except (subprocess.SubprocessError, OSError) as e:
                shutil.rmtree(scratch_dir, ignore_errors=True)
                raise EngineOpenError(
                    f"Failed to convert legacy presentation: {e}", reason="corrupt"
                ) from e

        try:
            handle = PptxDocumentHandle(source, scratch_dir)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as e:
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir, ignore_errors=True)
            raise EngineOpenError(f"Corrupt presentation: {e}", reason="corrupt") from e
        except OSError as e:
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir, ignore_errors=True)
            raise EngineOpenError(f"Cannot read presentation: {e}", reason="io-error") from e

        logger.info(f"Opened {source.name} with {handle.slide_count()} slides")
        return handle

    def create_writer(self) -> DocumentWriter:
        return PptxDocumentWriter()
