"""ActionRegistry — maps task names to the callables they run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ActionRegistry:
    """Central catalog of task actions, keyed by task name.

    An action receives the :class:`ScheduledTaskDefinition` being run and may
    be a plain function (run on the worker thread pool) or a coroutine
    function (awaited on the event loop)::

        actions = ActionRegistry()

        @actions.action("WeeklyLetterCheck")
        async def check_letters(task):
            ...
    """

    def __init__(self) -> None:
        self._actions: dict[str, Callable[..., Any]] = {}

    def action(self, name: str) -> Callable:
        """Decorator to register a function as the action for *name*."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name, fn)
            return fn

        return decorator

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register *fn* for task *name*. Raises ValueError on duplicate name."""
        if name in self._actions:
            msg = f"Action '{name}' is already registered"
            raise ValueError(msg)
        self._actions[name] = fn
        logger.debug("Registered action for task '%s'", name)

    def resolve(self, name: str) -> Callable[..., Any] | None:
        """Look up the action for *name*, or None."""
        return self._actions.get(name)

    @property
    def names(self) -> list[str]:
        """All registered task names."""
        return list(self._actions.keys())
