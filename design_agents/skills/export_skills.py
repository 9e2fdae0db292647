"""export: placeholder serialization of canvas elements (json / svg data URLs).

Raster formats need a renderer and are rejected here.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List
from urllib.parse import quote
from xml.sax.saxutils import escape, quoteattr

from design_agents.errors import ErrorKind, error_handler

SUPPORTED_FORMATS = ("json", "svg")


def _num(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _svg_element(element: Dict[str, Any]) -> str:
    kind = element.get("type")
    x, y = _num(element.get("x")), _num(element.get("y"))
    width, height = _num(element.get("width"), 100), _num(element.get("height"), 100)
    if kind == "image" or kind == "video":
        href = element.get("url") or element.get("src") or ""
        return (f'<image x="{x:g}" y="{y:g}" width="{width:g}" height="{height:g}" '
                f'href={quoteattr(href)} />')
    if kind == "text":
        content = element.get("content") or element.get("text") or ""
        size = _num(element.get("fontSize"), 16)
        fill = element.get("color") or "#000000"
        return (f'<text x="{x:g}" y="{y:g}" font-size="{size:g}" fill={quoteattr(fill)}>'
                f'{escape(str(content))}</text>')
    fill = element.get("fill") or element.get("color") or "#cccccc"
    return f'<rect x="{x:g}" y="{y:g}" width="{width:g}" height="{height:g}" fill={quoteattr(fill)} />'


def build_svg(elements: List[Dict[str, Any]], width: float, height: float) -> str:
    body = "".join(_svg_element(e) for e in elements if isinstance(e, dict))
    return (f'<svg xmlns="http://www.w3.org/2000/svg" width="{width:g}" height="{height:g}" '
            f'viewBox="0 0 {width:g} {height:g}">{body}</svg>')


async def export(params: Dict[str, Any]) -> str:
    fmt = (params.get("format") or "json").lower()
    elements = params.get("elements") or []
    if fmt not in SUPPORTED_FORMATS:
        raise error_handler.create_error(
            ErrorKind.VALIDATION,
            f"当前环境不支持导出格式: {fmt}",
            context={"skill": "export", "format": fmt},
            retryable=False,
        )
    if fmt == "json":
        payload = {
            "elements": elements,
            "exportedAt": datetime.now(timezone.utc).isoformat(),
        }
        return "data:application/json;charset=utf-8," + quote(json.dumps(payload, ensure_ascii=False))

    svg = build_svg(elements, _num(params.get("width"), 1024), _num(params.get("height"), 1024))
    return "data:image/svg+xml;charset=utf-8," + quote(svg)
