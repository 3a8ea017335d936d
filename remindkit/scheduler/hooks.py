"""Invocation of caller-supplied observability hooks."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


async def call_hook(hook: Callable[..., Any] | None, *args: Any) -> None:
    """Call *hook* (sync or async) with *args*; its failures are logged, not raised."""
    if hook is None:
        return
    try:
        result = hook(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Hook %r failed", hook)
