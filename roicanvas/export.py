"""JSON export of the canvas document."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from roicanvas.schemas import CanvasDocument

log = logging.getLogger(__name__)

EXPORT_ROOT_KEY = "AI_ROI_Roadmap_Canvas"


def canvas_payload(canvas: CanvasDocument) -> dict[str, Any]:
    return {EXPORT_ROOT_KEY: canvas.model_dump(mode="json", by_alias=True)}


def canvas_to_json(canvas: CanvasDocument, indent: int | None = 2) -> str:
    return json.dumps(canvas_payload(canvas), indent=indent, ensure_ascii=False)


def parse_canvas(text: str) -> CanvasDocument:
    """Parse an exported document, with or without the root wrapper key."""
    data = json.loads(text)
    if isinstance(data, dict) and EXPORT_ROOT_KEY in data:
        data = data[EXPORT_ROOT_KEY]
    return CanvasDocument.model_validate(data)


def write_canvas(canvas: CanvasDocument, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(canvas_to_json(canvas) + "\n", encoding="utf-8")
    log.info("Canvas written to %s", path)
    return path


def load_canvas(path: str | Path) -> CanvasDocument:
    return parse_canvas(Path(path).read_text(encoding="utf-8"))
