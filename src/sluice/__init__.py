"""Sluice: a Liquid-dialect template engine for Python.

Templates are lexed into tokens, parsed into a node tree and rendered
by generator-based render steps. The same steps run under a synchronous
driver and an ``asyncio`` driver, so drops and filters may return
coroutines when rendering asynchronously.

Quickstart:
    >>> from sluice import Environment
    >>> env = Environment()
    >>> env.parse_and_render("Hello, {{ name }}!", {"name": "World"})
    'Hello, World!'

File-based templates:
    >>> env = Environment(root="views/", extname=".liquid", cache=True)
    >>> env.render_file("index", {"page": page})

In-memory templates:
    >>> env = Environment(templates={"card": "<b>{{ title }}</b>"})
    >>> env.parse_and_render("{% render 'card', title: t %}", {"t": "Hi"})
    '<b>Hi</b>'

Architecture:
Template Source -> Lexer -> Tokens -> Parser (tag classes) -> Nodes -> render_templates

- **Lexer**: splits text into HTML, ``{{ output }}`` and ``{% tag %}``
  tokens and applies whitespace control
- **Parser**: builds nodes; block tags consume their own bodies
- **Renderer**: drives render generators through ``to_sync``/``to_async``
- **Analysis**: walks nodes statically to list the variables they read

Lenient by default:
Undefined variables render as empty strings. Pass
``strict_variables=True`` to raise ``UndefinedVariableError`` instead,
or ``strict_filters=True`` to reject unknown filters at parse time.
"""

from sluice._types import Token, TokenKind
from sluice.context import Context
from sluice.drops import BlankDrop, Drop, EmptyDrop, NullDrop
from sluice.environment.core import Environment
from sluice.environment.exceptions import (
    AggregateError,
    ErrorCode,
    LexError,
    LimitExceededError,
    ParseError,
    RenderError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    UndefinedVariableError,
    build_source_snippet,
)
from sluice.environment.loaders import DictLoader, FileSystemLoader
from sluice.environment.options import Options, normalize_options
from sluice.environment.registry import FilterDefinition
from sluice.environment.resolver import LookupType
from sluice.tags import BUILTIN_TAGS, Tag
from sluice.template import FilterContext, ForLoop, TablerowLoop, Template
from sluice.utils.lru import LRUCache

__version__ = "0.1.0"

__all__ = [
    "BUILTIN_TAGS",
    "AggregateError",
    "BlankDrop",
    "Context",
    "DictLoader",
    "Drop",
    "EmptyDrop",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FilterContext",
    "FilterDefinition",
    "ForLoop",
    "LRUCache",
    "LexError",
    "LimitExceededError",
    "LookupType",
    "NullDrop",
    "Options",
    "ParseError",
    "RenderError",
    "SourceSnippet",
    "StaticAnalysis",
    "TablerowLoop",
    "Tag",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "Token",
    "TokenKind",
    "UndefinedError",
    "UndefinedVariableError",
    "Variable",
    "__version__",
    "analyze",
    "analyze_async",
    "build_source_snippet",
    "normalize_options",
]


# Lazy-loaded analysis symbols (the walker is only needed for introspection).
_LAZY_ANALYSIS = frozenset({"StaticAnalysis", "Variable", "analyze", "analyze_async"})


def __getattr__(name: str) -> object:
    """Module-level getattr for lazy analysis imports."""
    if name in _LAZY_ANALYSIS:
        from sluice.analysis.analyzer import StaticAnalysis, analyze, analyze_async
        from sluice.analysis.dependencies import Variable

        # Populate globals so subsequent access is direct (no __getattr__)
        globals().update(
            StaticAnalysis=StaticAnalysis,
            Variable=Variable,
            analyze=analyze,
            analyze_async=analyze_async,
        )
        return globals()[name]
    raise AttributeError(f"module 'sluice' has no attribute {name!r}")
