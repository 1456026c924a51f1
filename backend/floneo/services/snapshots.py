"""JSON-safe snapshots of canvases and elements for responses, history rows and broadcasts."""
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

from floneo.models.canvas import Canvas, CanvasDetail, CanvasElement, ElementDetail


def element_detail(element: CanvasElement) -> ElementDetail:
    return ElementDetail.model_validate(element)


def element_snapshot(element: CanvasElement) -> Dict[str, Any]:
    return jsonable_encoder(element_detail(element))


def canvas_detail(canvas: Canvas) -> CanvasDetail:
    return CanvasDetail.model_validate(canvas)
