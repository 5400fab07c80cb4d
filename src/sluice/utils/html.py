"""Escapers available as ``output_escape``.

Both take the filter context first so they can charge the render's
memory budget for the text they produce.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from sluice.utils.values import UNDEFINED, to_str, to_value

if TYPE_CHECKING:
    from sluice.template.value import FilterContext

_ESCAPE_TABLE = str.maketrans(
    {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&#34;", "'": "&#39;"}
)


def escape(fctx: FilterContext, value: Any) -> str:
    """HTML-escape ``value`` after stringifying it."""
    text = to_str(value)
    fctx.context.memory_limit.use(len(text))
    return text.translate(_ESCAPE_TABLE)


def json(fctx: FilterContext, value: Any, indent: Any = None) -> str:
    """Serialize ``value`` as JSON; drops are reduced to their plain value."""
    text = _json.dumps(
        _plain(value),
        ensure_ascii=False,
        indent=int(indent) if indent is not None else None,
        default=str,
    )
    fctx.context.memory_limit.use(len(text))
    return text


def _plain(value: Any) -> Any:
    value = to_value(value)
    if value is UNDEFINED:
        return None
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
