from .document_json import deserialize_document, serialize_document, write_json
from .overlay import KIND_COLORS, draw_merge_overlay, fragment_polygon

__all__ = [
    "deserialize_document",
    "serialize_document",
    "write_json",
    "KIND_COLORS",
    "draw_merge_overlay",
    "fragment_polygon",
]
