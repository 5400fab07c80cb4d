"""Sluice template package: parsed templates and the render machinery.

Re-exports the public symbols so that ``from sluice.template import
Template`` works without knowing the module layout.
"""

from sluice.template.core import Template
from sluice.template.drivers import to_async, to_sync
from sluice.template.emitter import KeepingTypeEmitter, SimpleEmitter
from sluice.template.loop_context import ForLoop, TablerowLoop
from sluice.template.value import FilterContext

__all__ = [
    "FilterContext",
    "ForLoop",
    "KeepingTypeEmitter",
    "SimpleEmitter",
    "TablerowLoop",
    "Template",
    "to_async",
    "to_sync",
]
