"""Lifespan composition for the signet app factory.

Composes multiple :class:`LifespanContribution` hooks into a single
FastAPI-compatible lifespan context manager.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)

# Recommended lifespan priority constants
LIFESPAN_PRIORITY_OBSERVABILITY = 50
LIFESPAN_PRIORITY_AUTH = 100


@dataclass(frozen=True, slots=True)
class LifespanContribution:
    """A lifespan hook and its ordering priority.

    Attributes:
        hook: An async context manager factory ``(app) -> AsyncContextManager[None]``.
        priority: Ordering priority. Lower priorities start first (and shut down last).
    """

    hook: Any  # Callable[[Any], AsyncContextManager[None]]
    priority: int = 500


def compose_lifespan(
    hooks: list[LifespanContribution],
) -> object:
    """Create a composite lifespan from ordered :class:`LifespanContribution` hooks.

    Hooks are sorted by priority (ascending). Lower priority hooks start first
    and shut down last (stack semantics via :class:`AsyncExitStack`).

    Args:
        hooks: List of LifespanContribution instances.

    Returns:
        An async context manager factory suitable for FastAPI's ``lifespan`` parameter.
    """
    sorted_hooks = sorted(hooks, key=lambda h: h.priority)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for hook_contrib in sorted_hooks:
                logger.info(
                    "lifespan_hook_entered",
                    extra={"priority": hook_contrib.priority, "hook": repr(hook_contrib.hook)},
                )
                ctx = hook_contrib.hook(app)
                await stack.enter_async_context(ctx)
            yield

    return lifespan
