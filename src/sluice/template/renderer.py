"""Node-sequence rendering shared by templates, blocks and partials."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sluice.context import now_ms
from sluice.environment.exceptions import (
    AggregateError,
    LimitExceededError,
    RenderError,
    TemplateError,
)
from sluice.template.emitter import SimpleEmitter, create_emitter

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from sluice.context import Context
    from sluice.template.emitter import KeepingTypeEmitter
    from sluice.template.nodes import Node


def render_templates(
    nodes: Iterable[Node],
    ctx: Context,
    emitter: SimpleEmitter | KeepingTypeEmitter | None = None,
) -> Generator[Any, Any, Any]:
    """Render ``nodes`` in order and return the emitter's buffer.

    Stops after the node that set ``break_called``/``continue_called``.
    Errors are attributed to the failing node's token. With
    ``catch_all_errors`` rendering continues and every error is raised
    together as an ``AggregateError``; resource limit errors always stop
    the render immediately.
    """
    if emitter is None:
        emitter = create_emitter(ctx.opts.keep_output_type)
    errors: list[TemplateError] = []
    for node in nodes:
        try:
            ctx.render_limit.check(now_ms())
            html = yield node.render(ctx, emitter)
            if html:
                emitter.write(html)
        except LimitExceededError as exc:
            if exc.token is None:
                exc.token = node.token
            raise
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, TemplateError) and exc.token is not None
                else RenderError(exc, node.token)
            )
            if not ctx.opts.catch_all_errors:
                if error is exc:
                    raise
                raise error from exc
            # Collected errors from nested blocks join this level flat.
            errors.extend(error.errors if isinstance(error, AggregateError) else [error])
        if ctx.break_called or ctx.continue_called:
            break
    if errors:
        raise AggregateError(errors)
    return emitter.buffer
