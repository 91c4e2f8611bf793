"""Hook registry - per-DocType lifecycle callbacks.

Each DocumentEngine owns one registry; hooks are registered explicitly
at startup, either with ``register`` or the ``on`` decorator::

    hooks = engine.hooks

    @hooks.on("Invoice", HookEvent.BEFORE_SAVE)
    def default_status(doc, user):
        return {**doc, "status": doc.get("status") or "Draft"}
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from metadoc.auth.types import UserContext
from metadoc.hooks.types import HookEvent, HookFn, HookSet

logger = logging.getLogger(__name__)


class HookRegistry:
    """Maps DocType names to their HookSet."""

    def __init__(self) -> None:
        self._hooks: dict[str, HookSet] = {}

    def register(self, doc_type: str, hooks: HookSet | Mapping[str, HookFn]) -> None:
        """Merge callbacks into the DocType's hook set.

        A later registration for an event replaces the earlier one;
        events it does not mention keep their callbacks.
        """
        if not isinstance(hooks, HookSet):
            hooks = HookSet.from_mapping(hooks)
        self._hooks.setdefault(doc_type, HookSet()).merge(hooks)

    def on(self, doc_type: str, event: HookEvent | str) -> Callable[[HookFn], HookFn]:
        """Decorator form of ``register`` for a single event."""
        event = HookEvent(event)

        def decorator(fn: HookFn) -> HookFn:
            hook_set = HookSet()
            hook_set.set(event, fn)
            self.register(doc_type, hook_set)
            return fn

        return decorator

    def get(self, doc_type: str) -> HookSet | None:
        return self._hooks.get(doc_type)

    def trigger(
        self,
        doc_type: str,
        event: HookEvent | str,
        doc: dict[str, Any],
        user: UserContext,
    ) -> dict[str, Any]:
        """Run the DocType's callback for ``event``.

        Returns:
            The dict the callback returned, or ``doc`` unchanged when there
            is no callback or it returned something else.
        """
        event = HookEvent(event)
        hook_set = self._hooks.get(doc_type)
        fn = hook_set.get(event) if hook_set else None
        if fn is None:
            return doc

        logger.debug("Running %s hook for %s", event.value, doc_type)
        result = fn(doc, user)
        if isinstance(result, dict):
            return result
        return doc

    def list_doc_types(self) -> list[str]:
        return sorted(self._hooks)

    def clear(self) -> None:
        """Clear all registrations. Primarily for testing."""
        self._hooks.clear()
