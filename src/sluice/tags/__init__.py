"""Built-in tags.

``BUILTIN_TAGS`` maps each tag name to its class; every new
``Environment`` starts from a copy of it.
"""

from __future__ import annotations

from sluice.tags.base import Tag, expect_no_args
from sluice.tags.control_flow import (
    BreakTag,
    CaseTag,
    ContinueTag,
    ForTag,
    IfTag,
    TablerowTag,
    UnlessTag,
)
from sluice.tags.special_blocks import CommentTag, InlineCommentTag, LiquidTag, RawTag
from sluice.tags.template_structure import (
    BlockDrop,
    BlockMode,
    BlockTag,
    IncludeTag,
    LayoutTag,
    RenderTag,
)
from sluice.tags.variables import (
    AssignTag,
    CaptureTag,
    CycleTag,
    DecrementTag,
    EchoTag,
    IncrementTag,
)

BUILTIN_TAGS: dict[str, type[Tag]] = {
    "assign": AssignTag,
    "for": ForTag,
    "capture": CaptureTag,
    "case": CaseTag,
    "comment": CommentTag,
    "include": IncludeTag,
    "render": RenderTag,
    "decrement": DecrementTag,
    "increment": IncrementTag,
    "cycle": CycleTag,
    "if": IfTag,
    "layout": LayoutTag,
    "block": BlockTag,
    "raw": RawTag,
    "tablerow": TablerowTag,
    "unless": UnlessTag,
    "break": BreakTag,
    "continue": ContinueTag,
    "echo": EchoTag,
    "liquid": LiquidTag,
    "#": InlineCommentTag,
}

__all__ = [
    "BUILTIN_TAGS",
    "AssignTag",
    "BlockDrop",
    "BlockMode",
    "BlockTag",
    "BreakTag",
    "CaptureTag",
    "CaseTag",
    "CommentTag",
    "ContinueTag",
    "CycleTag",
    "DecrementTag",
    "EchoTag",
    "ForTag",
    "IfTag",
    "IncludeTag",
    "IncrementTag",
    "InlineCommentTag",
    "LayoutTag",
    "LiquidTag",
    "RawTag",
    "RenderTag",
    "TablerowTag",
    "Tag",
    "UnlessTag",
    "expect_no_args",
]
