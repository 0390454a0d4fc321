"""Declarative JSON Schema (draft 7) for Universal documents."""

from typing import Any

from deckschema_core.schemas.universal import ShapeType

SHAPE_TYPES = [shape_type.value for shape_type in ShapeType]

_NULLABLE_STRING = {"type": ["string", "null"]}

RGB_COLOR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["r", "g", "b"],
    "properties": {
        "type": {"type": "string", "enum": ["RGB"]},
        "r": {"type": "integer", "minimum": 0, "maximum": 255},
        "g": {"type": "integer", "minimum": 0, "maximum": 255},
        "b": {"type": "integer", "minimum": 0, "maximum": 255},
    },
}

GEOMETRY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["x", "y", "width", "height"],
    "properties": {
        "x": {"type": "number"},
        "y": {"type": "number"},
        "width": {"type": "number", "minimum": 0},
        "height": {"type": "number", "minimum": 0},
        "rotation": {"type": "number", "minimum": 0, "exclusiveMaximum": 360},
    },
}

SHAPE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["shapeIndex", "shapeType", "geometry"],
    "properties": {
        "shapeIndex": {"type": "integer", "minimum": 0},
        "shapeId": _NULLABLE_STRING,
        "shapeType": {"type": "string", "enum": SHAPE_TYPES},
        "name": {"type": "string"},
        "geometry": GEOMETRY_SCHEMA,
        "text": _NULLABLE_STRING,
        "textFrame": {
            "type": "object",
            "properties": {
                "text": {"type": "string"},
                "paragraphs": {"type": "array"},
            },
        },
        "fillFormat": {
            "type": "object",
            "properties": {
                "type": {"type": "string"},
                "solidFillColor": RGB_COLOR_SCHEMA,
            },
        },
        "properties": {
            "type": "object",
            "required": ["kind"],
            "properties": {
                "kind": {
                    "type": "string",
                    "enum": ["table", "chart", "picture", "media", "group"],
                }
            },
        },
        "enrichmentStatus": {"type": "string", "enum": ["success", "failed"]},
        "error": {"type": "boolean"},
        "errorMessage": _NULLABLE_STRING,
    },
}

SLIDE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["slideIndex", "shapes"],
    "properties": {
        "slideIndex": {"type": "integer", "minimum": 0},
        "slideId": _NULLABLE_STRING,
        "name": {"type": "string"},
        "slideType": {
            "type": "string",
            "enum": ["Slide", "MasterSlide", "LayoutSlide"],
        },
        "shapes": {"type": "array", "items": SHAPE_SCHEMA},
        "notes": {
            "type": "object",
            "properties": {
                "hasNotes": {"type": "boolean"},
                "text": {"type": "string"},
            },
        },
        "transition": {
            "type": "object",
            "properties": {
                "type": {"type": "string"},
                "duration": {"type": "number", "minimum": 0},
            },
        },
        "error": {"type": "boolean"},
    },
}

METADATA_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["title", "slideCount", "version"],
    "properties": {
        "title": {"type": "string"},
        "subject": _NULLABLE_STRING,
        "author": _NULLABLE_STRING,
        "company": _NULLABLE_STRING,
        "keywords": _NULLABLE_STRING,
        "comments": _NULLABLE_STRING,
        "createdTime": {"type": "string", "format": "date-time"},
        "lastSavedTime": {"type": "string", "format": "date-time"},
        "slideCount": {"type": "integer", "minimum": 0},
        "revision": {"type": "integer", "minimum": 1},
        "version": {"type": "string"},
    },
}

SLIDE_SIZE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["width", "height"],
    "properties": {
        "width": {"type": "number", "minimum": 1},
        "height": {"type": "number", "minimum": 1},
        "type": {"type": "string"},
    },
}

UNIVERSAL_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "UniversalDocument",
    "type": "object",
    "required": ["metadata", "slides"],
    "properties": {
        "id": {"type": "string"},
        "metadata": METADATA_SCHEMA,
        "slideSize": SLIDE_SIZE_SCHEMA,
        "slides": {"type": "array", "items": SLIDE_SCHEMA},
        "masterSlides": {"type": "array"},
        "layoutSlides": {"type": "array"},
        "theme": {"type": "object"},
        "conversionMetadata": {"type": "object"},
        "createdAt": {"type": "string", "format": "date-time"},
        "updatedAt": {"type": "string", "format": "date-time"},
    },
}

# Injected for a missing required field, keyed by field name
FIELD_DEFAULTS: dict[str, Any] = {
    "title": "Untitled Presentation",
    "slideCount": 0,
    "version": "1.0.0",
    "author": "",
    "subject": "",
    "metadata": {},
    "slides": [],
    "slideIndex": 0,
    "shapes": [],
    "shapeIndex": 0,
    "shapeType": "textBox",
    "name": "",
    "geometry": {},
    "x": 0,
    "y": 0,
    "width": 100,
    "height": 50,
    "rotation": 0,
    "r": 0,
    "g": 0,
    "b": 0,
}
